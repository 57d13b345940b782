from config import Settings
from exceptions import ImgfitError
from processor.base import Codec
from processor.imagemagick import ImageMagickCodec
from processor.pillow import PillowCodec
from processor.transform import Processor


def _imagemagick(settings: Settings) -> Codec:
    return ImageMagickCodec(
        convert_cmd=settings.im_convert,
        identify_cmd=settings.im_identify,
        timeout=settings.tool_timeout_seconds or None,
        debug=settings.debug,
    )


def _pillow(settings: Settings) -> Codec:
    return PillowCodec(debug=settings.debug)


CODECS = {
    "imagemagick": _imagemagick,
    "pillow": _pillow,
}


def create_codec(settings: Settings) -> Codec:
    """Build the codec selected by settings.codec.

    Raises:
        ImgfitError: If the codec name is unknown.
    """
    factory = CODECS.get(settings.codec.lower())
    if factory is None:
        raise ImgfitError(
            f"Unknown codec '{settings.codec}'. Must be one of: {', '.join(CODECS)}",
            codec=settings.codec,
        )
    return factory(settings)


def create_processor(settings: Settings) -> Processor:
    return Processor(create_codec(settings), settings.processor_config())

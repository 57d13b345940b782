from typing import Optional

from config import ProcessorConfig
from exceptions import InputError
from processor.base import Codec
from processor.formats import choose_output_format, format_directives, quality_directives
from processor.geometry import compute_fit_target, compute_resize_target
from processor.illustration import is_illustration
from schemas import (
    Directive,
    Image,
    Info,
    OptimiseConfig,
    ResizeConfig,
    TransformationConfig,
)
from utils.logging import get_logger

logger = get_logger("processor.transform")

CUT_TO_FIT = [Directive("-gravity", "center")]


class Processor:
    """Turns a transformation request into a single codec transform call.

    Each operation identifies the source, works out the target size, output
    format and quality, builds the ordered directive list and runs it:

        resize/fit directive, quality, extra directives, hook directives,
        tuning, [gravity + extent for fit], format directives, output

    Calls are independent; the processor holds no per-call state.
    """

    def __init__(self, codec: Codec, config: Optional[ProcessorConfig] = None):
        self.codec = codec
        self.config = config or ProcessorConfig()

    async def load_info(self, image: Image) -> Info:
        """Identify the image; PNG sources also get classified."""
        info = await self.codec.identify(image)
        if info.format == "PNG":
            # Codecs report an arbitrary quality for PNG
            info = info.model_copy(update={"quality": 100})
            illustration = await is_illustration(self.codec, image, info)
            info = info.model_copy(update={"illustration": illustration})
        return info

    async def resize(self, config: TransformationConfig) -> Image:
        """Resize preserving aspect ratio. No cropping.

        Size is "W", "xH" or "WxH"; with both given the image fits inside.
        """
        size = _resize_size(config)
        src = config.src
        source = await self.load_info(src)

        try:
            width, height = compute_resize_target(source, size)
        except InputError:
            if self.config.strict_geometry:
                raise
            logger.warning(
                f"[{src.id}] Could not calculate target size for [{size}]",
                extra={"image_id": src.id, "context": {"size": size}},
            )
            width, height = 0, 0

        directives = [Directive("-resize", size)]
        return await self._run("resize", config, source, width, height, directives)

    async def fit_to_size(self, config: TransformationConfig) -> Image:
        """Resize to exactly WxH, cropping whatever falls outside (center gravity).

        Raises:
            InputError: If size isn't "WxH". Raised before the codec is called.
        """
        size = _resize_size(config)
        width, height = compute_fit_target(size)
        source = await self.load_info(config.src)

        directives = [Directive("-resize", f"{size}^")]
        post = CUT_TO_FIT + [Directive("-extent", size)]
        return await self._run("fit", config, source, width, height, directives, post)

    async def optimise(self, config: TransformationConfig) -> Image:
        """Re-encode at the original size, in a next-gen format where possible.

        Never returns more bytes than it was given: if the codec output is
        larger, the source is returned as-is with an empty mime type.
        """
        src = config.src
        source = await self.load_info(src)

        result = await self._run("optimise", config, source, source.width, source.height, [])

        if len(result.data) > len(src.data):
            logger.warning(
                f"[{src.id}] Optimised size [{len(result.data)}] is more than original "
                f"[{len(src.data)}], fallback to original",
                extra={"image_id": src.id},
            )
            return Image(id=src.id, data=src.data, mime_type="")
        return result

    def close(self) -> None:
        self.codec.close()

    async def _run(
        self,
        op: str,
        config: TransformationConfig,
        source: Info,
        width: int,
        height: int,
        directives: list[Directive],
        post: Optional[list[Directive]] = None,
    ) -> Image:
        src = config.src
        output_format, mime_type = choose_output_format(source, width, height, config.supported_formats)

        directives = directives + quality_directives(source, config.quality, mime_type, src.id)
        directives += self.config.extra_directives
        if self.config.directives_hook is not None:
            target = Info(opaque=source.opaque, width=width, height=height)
            directives += self.config.directives_hook(op, src.data, source, target)
        directives += self.config.tuning
        directives += post or []
        directives += format_directives(source)

        data = await self.codec.transform(src, directives, output_format)
        return Image(id=src.id, data=data, mime_type=mime_type)


def _resize_size(config: TransformationConfig) -> str:
    payload = config.config
    if isinstance(payload, ResizeConfig):
        return payload.size
    if isinstance(payload, OptimiseConfig):
        raise InputError("Size is required for resize operations", image_id=config.src.id)
    raise TypeError(f"Unknown operation config: {type(payload).__name__}")

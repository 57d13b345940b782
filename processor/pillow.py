import asyncio
import io
from contextlib import asynccontextmanager
from typing import Optional

from PIL import Image as PILImage
from PIL import ImageOps, ImageSequence, UnidentifiedImageError

from exceptions import IdentifyError, InputError, TransformError
from processor.base import Codec, DecodedImage
from processor.geometry import fit_geometry
from schemas import Directive, Image, Info
from utils.logging import get_logger

logger = get_logger("processor.pillow")

# Pillow names that differ from ImageMagick format tokens
_FORMAT_ALIASES = {
    "MPO": "JPEG",
}

_OUTPUT_FORMATS = {
    "avif": "AVIF",
    "webp": "WEBP",
}

# Pillow can't write these modes to JPEG
_NEEDS_RGB = {"JPEG": {"RGBA", "LA", "P", "PA", "CMYK", "I;16", "I", "F"}}

# Formats written with every frame of an animated source
_ANIMATED_FORMATS = {"GIF", "WEBP", "PNG", "AVIF"}
_DEFAULT_FRAME_DURATION = 100

_PILLOW_ERRORS = (UnidentifiedImageError, OSError, ValueError, PILImage.DecompressionBombError)


def estimate_jpeg_quality(avg_q: float) -> int:
    """Estimate JPEG quality from the average luminance quantization value.

    Inverse of the IJG scaling formula:
      For q >= 50: scale = 200 - 2*quality  → quality = (200 - scale) / 2
      For q < 50:  scale = 5000 / quality    → quality = 5000 / scale
    with scale ≈ avg_q / 57.625 * 100 (57.625 = mean of the base table).
    """
    if avg_q <= 0.5:
        return 100
    scale = (avg_q / 57.625) * 100.0
    if scale < 100:
        quality = int((200 - scale) / 2)
    else:
        quality = int(5000 / scale)
    return max(1, min(100, quality))


class PillowCodec(Codec):
    """In-process codec built on Pillow (+ pillow-avif-plugin).

    Understands the subset of ImageMagick directives the processor emits:
    -resize, -quality, -gravity, -extent, -define webp:lossless,
    -define webp:method, +profile and -strip. Everything else is ignored.
    Blocking work runs in a worker thread.
    """

    name = "pillow"

    def __init__(self, debug: bool = False):
        self.debug = debug

    def available(self) -> dict[str, bool]:
        try:
            import pillow_avif  # noqa: F401  registers the AVIF plugin

            avif = True
        except ImportError:
            avif = "AVIF" in PILImage.registered_extensions().values()
        return {"pillow": True, "avif": avif}

    async def identify(self, image: Image) -> Info:
        try:
            return await asyncio.to_thread(self._identify, image.data)
        except _PILLOW_ERRORS as e:
            raise IdentifyError(
                f"[{image.id}] identify failed: {e}",
                image_id=image.id,
            ) from e

    def _identify(self, data: bytes) -> Info:
        with PILImage.open(io.BytesIO(data)) as img:
            fmt = _FORMAT_ALIASES.get(img.format, img.format or "")
            quality = 0
            if fmt == "JPEG":
                qtables = getattr(img, "quantization", None)
                if qtables:
                    table = qtables[0] if 0 in qtables else list(qtables.values())[0]
                    quality = estimate_jpeg_quality(sum(table) / len(table))
            elif fmt == "PNG":
                quality = 100
            return Info(
                format=fmt,
                quality=quality,
                opaque=_is_opaque(img),
                width=img.width,
                height=img.height,
                size=len(data),
            )

    async def transform(
        self,
        image: Image,
        directives: list[Directive],
        output_format: str = "",
    ) -> bytes:
        if self.debug:
            logger.info(
                f"[{image.id}] Running pillow transform, directives {directives}, output '{output_format}'",
                extra={"image_id": image.id},
            )
        try:
            return await asyncio.to_thread(self._transform, image.data, directives, output_format)
        except _PILLOW_ERRORS + (KeyError, InputError) as e:
            logger.error(
                f"[{image.id}] Error running pillow transform: {e}",
                extra={"image_id": image.id},
            )
            raise TransformError(
                f"[{image.id}] transform failed: {e}",
                image_id=image.id,
            ) from e

    def _transform(self, data: bytes, directives: list[Directive], output_format: str) -> bytes:
        with PILImage.open(io.BytesIO(data)) as src:
            src_format = src.format
            icc_profile = src.info.get("icc_profile")
            loop = src.info.get("loop")
            frames = []
            durations = []
            for frame in ImageSequence.Iterator(src):
                durations.append(frame.info.get("duration", _DEFAULT_FRAME_DURATION))
                frames.append(ImageOps.exif_transpose(frame.copy()))

        # Geometry ops are replayed on every frame
        ops = []
        save_kwargs = {}
        gravity = "northwest"
        for directive in directives:
            option, value = directive
            if option == "-resize":
                ops.append((option, value, gravity))
            elif option == "-gravity":
                gravity = value.lower()
            elif option == "-extent":
                ops.append((option, value, gravity))
            elif option == "-quality":
                save_kwargs["quality"] = int(value)
            elif option == "-define" and value == "webp:lossless=true":
                save_kwargs["lossless"] = True
            elif option == "-define" and value.startswith("webp:method="):
                save_kwargs["method"] = int(value.split("=", 1)[1])
            elif option in ("+profile", "-strip"):
                if option == "-strip" or "!icc" not in (value or ""):
                    icc_profile = None

        target = _OUTPUT_FORMATS.get(output_format) or _FORMAT_ALIASES.get(src_format, src_format)
        if target == "AVIF":
            import pillow_avif  # noqa: F401  registers the AVIF plugin

            save_kwargs.pop("lossless", None)
            save_kwargs.pop("method", None)
            save_kwargs["speed"] = 6
        elif target != "WEBP":
            save_kwargs.pop("lossless", None)
            save_kwargs.pop("method", None)

        if target not in _ANIMATED_FORMATS:
            frames, durations = frames[:1], durations[:1]
        frames = [_convert_mode(_apply_geometry(frame, ops), target) for frame in frames]

        if target == "PNG":
            save_kwargs.pop("quality", None)
            save_kwargs["optimize"] = True
        if icc_profile:
            save_kwargs["icc_profile"] = icc_profile
        if len(frames) > 1:
            save_kwargs.update(save_all=True, append_images=frames[1:], duration=durations)
            if loop is not None:
                save_kwargs["loop"] = loop

        output = io.BytesIO()
        frames[0].save(output, format=target, **save_kwargs)
        return output.getvalue()

    @asynccontextmanager
    async def decode(self, image: Image, info: Optional[Info] = None):
        try:
            img = await asyncio.to_thread(_load, image.data)
        except _PILLOW_ERRORS as e:
            raise IdentifyError(f"[{image.id}] decode failed: {e}", image_id=image.id) from e

        decoded = _PillowDecodedImage(img)
        try:
            yield decoded
        finally:
            decoded.close()


class _PillowDecodedImage(DecodedImage):
    def __init__(self, img: PILImage.Image):
        self._img = img
        self.width = img.width
        self.height = img.height

    async def scale(self, width: int, height: int) -> None:
        scaled = await asyncio.to_thread(self._img.resize, (width, height), PILImage.Resampling.NEAREST)
        self._img.close()
        self._img = scaled
        self.width = width
        self.height = height

    async def histogram(self) -> list[int]:
        return await asyncio.to_thread(self._histogram)

    def _histogram(self) -> list[int]:
        img = self._img if self._img.mode == "RGBA" else self._img.convert("RGBA")
        colors = img.getcolors(maxcolors=img.width * img.height)
        return [count for count, _color in colors or []]

    def close(self) -> None:
        self._img.close()


def _load(data: bytes) -> PILImage.Image:
    img = PILImage.open(io.BytesIO(data))
    img.load()
    return img


def _apply_geometry(img: PILImage.Image, ops: list[tuple[str, str, str]]) -> PILImage.Image:
    for option, value, gravity in ops:
        if option == "-resize":
            img = img.resize(fit_geometry(img.width, img.height, value), PILImage.Resampling.LANCZOS)
        else:
            img = _extent(img, value, gravity)
    return img


def _convert_mode(img: PILImage.Image, target: str) -> PILImage.Image:
    if target in _NEEDS_RGB and img.mode in _NEEDS_RGB[target]:
        return img.convert("RGB")
    if target in ("WEBP", "AVIF") and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    return img


def _has_alpha(img: PILImage.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _is_opaque(img: PILImage.Image) -> bool:
    if not _has_alpha(img):
        return True
    alpha = img.convert("RGBA").getchannel("A")
    return alpha.getextrema()[0] == 255


def _extent(img: PILImage.Image, geometry: str, gravity: str) -> PILImage.Image:
    """Crop (or pad) to exactly WxH, anchored by gravity."""
    width, height = (int(part) for part in geometry.rstrip("!^<>").split("x", 1))
    if gravity == "center":
        left = (img.width - width) // 2
        top = (img.height - height) // 2
    else:
        left = top = 0
    return img.crop((left, top, left + width, top + height))

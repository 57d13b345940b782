import re
import shutil
from contextlib import asynccontextmanager
from typing import Optional

from exceptions import IdentifyError, ToolExecutionError, ToolTimeoutError, TransformError
from processor.base import Codec, DecodedImage
from schemas import Directive, Image, Info
from utils.logging import get_logger
from utils.subprocess_runner import run_tool

logger = get_logger("processor.imagemagick")

IDENTIFY_FORMAT = "%m %Q %[opaque] %w %h"

# Multi-frame images print one record per frame with no separator, so only
# the first record is matched.
_IDENTIFY_RE = re.compile(r"\s*(\S+) (\d+) (\w+) (\d+) (\d+)")
_HISTOGRAM_LINE_RE = re.compile(r"^\s*(\d+):", re.MULTILINE)


class ImageMagickCodec(Codec):
    """Codec backed by the ImageMagick "convert" and "identify" binaries.

    Every call spawns a process; image bytes go through stdin/stdout.

    Args:
        convert_cmd: Path or name of the "convert" binary.
        identify_cmd: Path or name of the "identify" binary.
        timeout: Seconds before a process is killed. None waits forever.
        debug: Log every command line at INFO.
    """

    name = "imagemagick"

    def __init__(
        self,
        convert_cmd: str = "convert",
        identify_cmd: str = "identify",
        timeout: Optional[float] = None,
        debug: bool = False,
    ):
        self.convert_cmd = convert_cmd
        self.identify_cmd = identify_cmd
        self.timeout = timeout
        self.debug = debug

    def available(self) -> dict[str, bool]:
        return {
            "convert": shutil.which(self.convert_cmd) is not None,
            "identify": shutil.which(self.identify_cmd) is not None,
        }

    async def identify(self, image: Image) -> Info:
        cmd = [self.identify_cmd, "-format", IDENTIFY_FORMAT, "-"]
        self._log_command(image.id, "identify", cmd)

        try:
            stdout = await run_tool(cmd, image.data, timeout=self.timeout)
        except ToolTimeoutError as e:
            raise _with_image_id(e, image) from e
        except ToolExecutionError as e:
            logger.error(
                f"[{image.id}] Error executing identify command: {e.message}",
                extra={"image_id": image.id},
            )
            raise IdentifyError(
                f"[{image.id}] identify failed: {e.message}",
                image_id=image.id,
                **e.details,
            ) from e

        output = stdout.decode(errors="replace")
        match = _IDENTIFY_RE.match(output)
        if match is None:
            raise IdentifyError(
                f"[{image.id}] Unexpected identify output: {output[:200]!r}",
                image_id=image.id,
            )

        fmt, quality, opaque, width, height = match.groups()
        return Info(
            format=fmt,
            quality=int(quality),
            opaque=opaque.lower() == "true",
            width=int(width),
            height=int(height),
            size=len(image.data),
        )

    async def transform(
        self,
        image: Image,
        directives: list[Directive],
        output_format: str = "",
    ) -> bytes:
        cmd = [self.convert_cmd, "-"]
        for directive in directives:
            cmd.extend(directive.args())
        cmd.append(f"{output_format}:-" if output_format else "-")
        self._log_command(image.id, "convert", cmd)

        try:
            return await run_tool(cmd, image.data, timeout=self.timeout)
        except ToolTimeoutError as e:
            raise _with_image_id(e, image) from e
        except ToolExecutionError as e:
            logger.error(
                f"[{image.id}] Error executing convert command: {e.message}",
                extra={"image_id": image.id},
            )
            raise TransformError(
                f"[{image.id}] convert failed: {e.message}",
                image_id=image.id,
                **e.details,
            ) from e

    @asynccontextmanager
    async def decode(self, image: Image, info: Optional[Info] = None):
        if info is None:
            info = await self.identify(image)
        yield _ImageMagickDecodedImage(self, image, info.width, info.height)

    async def _histogram(self, image: Image, scale: Optional[tuple[int, int]]) -> list[int]:
        cmd = [self.convert_cmd, "-"]
        if scale is not None:
            cmd.extend(["-scale", f"{scale[0]}x{scale[1]}!"])
        cmd.extend(["-format", "%c", "histogram:info:-"])
        self._log_command(image.id, "histogram", cmd)

        try:
            stdout = await run_tool(cmd, image.data, timeout=self.timeout)
        except ToolTimeoutError as e:
            raise _with_image_id(e, image) from e
        except ToolExecutionError as e:
            raise IdentifyError(
                f"[{image.id}] histogram failed: {e.message}",
                image_id=image.id,
                **e.details,
            ) from e

        return [int(count) for count in _HISTOGRAM_LINE_RE.findall(stdout.decode(errors="replace"))]

    def _log_command(self, image_id: str, name: str, cmd: list[str]) -> None:
        if self.debug:
            logger.info(f"[{image_id}] Running {name} command, args {cmd}", extra={"image_id": image_id})
        else:
            logger.debug(f"[{image_id}] Running {name} command, args {cmd}", extra={"image_id": image_id})


def _with_image_id(error: ToolTimeoutError, image: Image) -> ToolTimeoutError:
    return ToolTimeoutError(f"[{image.id}] {error.message}", **{**error.details, "image_id": image.id})


class _ImageMagickDecodedImage(DecodedImage):
    """Scaling is deferred and applied in the same process as the histogram."""

    def __init__(self, codec: ImageMagickCodec, image: Image, width: int, height: int):
        self._codec = codec
        self._image = image
        self._scale: Optional[tuple[int, int]] = None
        self.width = width
        self.height = height

    async def scale(self, width: int, height: int) -> None:
        self._scale = (width, height)
        self.width = width
        self.height = height

    async def histogram(self) -> list[int]:
        return await self._codec._histogram(self._image, self._scale)

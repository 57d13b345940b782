from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Optional

from schemas import Directive, Image, Info


class DecodedImage(ABC):
    """A decoded image held by a codec for pixel-level queries.

    Only valid inside the codec's decode() context.
    """

    width: int
    height: int

    @abstractmethod
    async def scale(self, width: int, height: int) -> None:
        """Scale the working copy to exactly width x height."""

    @abstractmethod
    async def histogram(self) -> list[int]:
        """Pixel count of every distinct color, in no particular order."""


class Codec(ABC):
    """External image toolkit used to identify and transform images.

    Implementations translate their own failures into IdentifyError and
    TransformError carrying the image id. Nothing is retried.
    """

    name: str

    @abstractmethod
    async def identify(self, image: Image) -> Info:
        """Read format, quality, opacity and dimensions.

        Returns:
            Info with illustration=False.

        Raises:
            IdentifyError: If the codec fails or its output can't be parsed.
        """

    @abstractmethod
    async def transform(
        self,
        image: Image,
        directives: list[Directive],
        output_format: str = "",
    ) -> bytes:
        """Apply directives in order and encode the result.

        Args:
            image: Source image.
            directives: Ordered codec directives. Later ones win.
            output_format: "avif", "webp" or "" to keep the source format.

        Raises:
            TransformError: If the codec fails.
        """

    @abstractmethod
    def decode(
        self,
        image: Image,
        info: Optional[Info] = None,
    ) -> AbstractAsyncContextManager[DecodedImage]:
        """Decode the image for histogram work.

        info, when known, saves the codec a second identify. Use as
        ``async with codec.decode(image) as decoded:``; resources are
        released when the block exits, including on errors.
        """

    def available(self) -> dict[str, bool]:
        """Availability of the tools this codec depends on."""
        return {}

    def close(self) -> None:
        """Release codec resources. Called once by the host on shutdown."""

from processor.base import Codec
from schemas import Image, Info
from utils.logging import get_logger

logger = get_logger("processor.illustration")

SMALL_FILE_SIZE = 20 * 1024
LARGE_FILE_SIZE = 1024 * 1024
MAX_BYTES_PER_PIXEL = 1.0
MAX_HISTOGRAM_PIXELS = 500 * 500
HISTOGRAM_WIDTH = 500
MAX_COLORS = 30000


async def is_illustration(codec: Codec, image: Image, info: Info) -> bool:
    """Return True for cartoon-like images: icons, logos, illustrations.

    Returns False for banners, product images and photos. Used for PNG
    sources to choose lossless over lossy encoding when converting to a
    next-gen format.

    Cheap checks on file size and bytes per pixel run first. Otherwise the
    color histogram decides: illustrations put most of their pixels into a
    handful of flat colors, photos spread them over many similar ones. A
    dominant color (10% or more of the pixels) is treated as background and
    left out of the count.

    Based on https://legacy.imagemagick.org/Usage/compare/#type_reallife
    """
    size = len(image.data)
    if size < SMALL_FILE_SIZE:
        return True

    if size > LARGE_FILE_SIZE:
        return False

    pixels = info.width * info.height
    if pixels <= 0 or size / pixels > MAX_BYTES_PER_PIXEL:
        return False

    async with codec.decode(image, info) as decoded:
        if pixels > MAX_HISTOGRAM_PIXELS:
            aspect_ratio = info.width / info.height
            await decoded.scale(HISTOGRAM_WIDTH, max(1, int(HISTOGRAM_WIDTH / aspect_ratio)))

        counts = await decoded.histogram()
        total_pixels = decoded.width * decoded.height

    colors = len(counts)
    if colors == 0 or colors > MAX_COLORS:
        return False

    needed = colors_in_half(sorted(counts, reverse=True), total_pixels)

    logger.debug(
        f"[{image.id}] {colors} colors, {needed} cover 50% of the image",
        extra={"image_id": image.id, "context": {"colors": colors, "colors_in_half": needed}},
    )
    return needed < 10 or needed / colors <= 0.02


def colors_in_half(counts: list[int], total_pixels: int) -> int:
    """Number of colors covering half of the non-background pixels.

    counts must be sorted descending.
    """
    ten_percent = int(total_pixels * 0.1)
    fifty_percent = int(total_pixels * 0.5)
    has_background = False
    covered = 0

    idx = 0
    for idx, count in enumerate(counts):
        if idx == 0 and count >= ten_percent:
            has_background = True
            fifty_percent = int((total_pixels - count) * 0.5)
            continue

        if covered > fifty_percent:
            break

        covered += count

    needed = idx + 1
    if has_background:
        needed -= 1
    return needed

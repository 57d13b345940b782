from schemas import Directive, Info, Quality
from utils.logging import get_logger

logger = get_logger("processor.formats")

AVIF_MIME = "image/avif"
WEBP_MIME = "image/webp"

# cwebp/libwebp hard limit per side
MAX_WEBP_WIDTH = 16383
MAX_WEBP_HEIGHT = 16383

# Largest target (in pixels) we encode to AVIF. Above this AVIF encoding
# needs a lot of memory and WebP gives better results for the same bytes.
MAX_AVIF_TARGET_SIZE = 2000 * 2000

_TIER_PENALTY = {
    Quality.DEFAULT: 0,
    Quality.LOW: 10,
    Quality.LOWER: 20,
}


def choose_output_format(
    source: Info,
    target_width: int,
    target_height: int,
    supported: dict[str, bool],
) -> tuple[str, str]:
    """Pick the output format for a transformation.

    Returns:
        (format_token, mime_type). format_token is "avif", "webp" or "" for
        "keep the source format", in which case mime_type is "" as well.
    """
    target_size = target_width * target_height
    if (
        supported.get(AVIF_MIME, False)
        and source.format != "GIF"
        and not source.illustration
        and 0 < target_size < MAX_AVIF_TARGET_SIZE
    ):
        return "avif", AVIF_MIME

    if (
        supported.get(WEBP_MIME, False)
        and source.width < MAX_WEBP_WIDTH
        and source.height < MAX_WEBP_HEIGHT
    ):
        return "webp", WEBP_MIME

    return "", ""


def format_directives(source: Info) -> list[Directive]:
    """Encoder settings that depend only on the source."""
    directives = []
    if source.illustration:
        directives.append(Directive("-define", "webp:lossless=true"))
    if source.format != "GIF":
        directives.append(Directive("-define", "webp:method=6"))
    return directives


def compute_quality(source: Info, tier: Quality, output_mime: str) -> int:
    """Output quality for the given source, tier and output type.

    AVIF looks as good as JPEG/WebP at a much lower number, hence its own
    bands. 0 means "no quality directive, keep the codec default".
    """
    if output_mime == AVIF_MIME:
        if source.quality > 85:
            quality = 70
        elif source.quality > 75:
            quality = 60
        else:
            quality = 50
    elif source.quality == 100:
        quality = 82
    elif tier != Quality.DEFAULT:
        quality = source.quality
    else:
        quality = 0

    if quality != 0 and quality != 100:
        quality -= _TIER_PENALTY[tier]

    return quality


def quality_directives(
    source: Info,
    tier: Quality,
    output_mime: str,
    image_id: str = "",
) -> list[Directive]:
    quality = compute_quality(source, tier, output_mime)
    logger.debug(
        f"[{image_id}] Source quality: {source.quality}, tier: {tier.value}, "
        f"output type: {output_mime or 'source'}, quality: {quality}",
        extra={"image_id": image_id},
    )
    if quality == 0:
        return []
    return [Directive("-quality", str(max(1, min(100, quality))))]

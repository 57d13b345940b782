import struct
from enum import Enum

from exceptions import UnsupportedFormatError


class ImageFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    WEBP = "webp"
    AVIF = "avif"
    HEIC = "heic"
    TIFF = "tiff"
    BMP = "bmp"
    SVG = "svg"


MIME_TYPES = {
    ImageFormat.PNG: "image/png",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.GIF: "image/gif",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.AVIF: "image/avif",
    ImageFormat.HEIC: "image/heic",
    ImageFormat.TIFF: "image/tiff",
    ImageFormat.BMP: "image/bmp",
    ImageFormat.SVG: "image/svg+xml",
}

_AVIF_BRANDS = (b"avif", b"avis")
_HEIC_BRANDS = (b"heic", b"heix", b"mif1")


def detect_format(data: bytes) -> ImageFormat:
    """Detect image format from magic bytes.

    Used to validate fetched sources before handing them to a codec, and to
    label responses whose bytes kept the source format.

    Raises:
        UnsupportedFormatError: If no known format matches.
    """
    if len(data) < 4:
        raise UnsupportedFormatError("File too small to identify format")

    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return ImageFormat.PNG

    if data[:3] == b"\xff\xd8\xff":
        return ImageFormat.JPEG

    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ImageFormat.GIF

    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP

    if data[:2] == b"BM":
        return ImageFormat.BMP

    if data[:4] in (b"II\x2a\x00", b"MM\x00\x2a"):
        return ImageFormat.TIFF

    if len(data) >= 12 and data[4:8] == b"ftyp":
        return _detect_isobmff(data)

    head = data[3:259] if data[:3] == b"\xef\xbb\xbf" else data[:256]
    head = head.lstrip().lower()
    if head.startswith(b"<?xml") or head.startswith(b"<svg"):
        return ImageFormat.SVG

    raise UnsupportedFormatError(
        "Unrecognized file format",
        detected_bytes=data[:16].hex(),
    )


def _detect_isobmff(data: bytes) -> ImageFormat:
    """AVIF vs HEIC from the ftyp major brand, then its compatible brands."""
    major_brand = data[8:12]
    if major_brand in _AVIF_BRANDS:
        return ImageFormat.AVIF
    if major_brand in _HEIC_BRANDS:
        return ImageFormat.HEIC

    box_end = min(struct.unpack(">I", data[:4])[0], len(data))
    for offset in range(16, box_end - 3, 4):
        brand = data[offset : offset + 4]
        if brand in _AVIF_BRANDS:
            return ImageFormat.AVIF
        if brand in _HEIC_BRANDS:
            return ImageFormat.HEIC

    raise UnsupportedFormatError(
        "ISO BMFF file with unrecognized brand",
        major_brand=major_brand.decode("ascii", errors="replace"),
    )


def mime_type_for(data: bytes, default: str = "application/octet-stream") -> str:
    """MIME type of encoded bytes, or default when the format is unknown."""
    try:
        return MIME_TYPES[detect_format(data)]
    except UnsupportedFormatError:
        return default

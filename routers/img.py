from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from config import settings
from exceptions import BadRequestError
from processor.formats import AVIF_MIME, WEBP_MIME
from processor.geometry import compute_fit_target
from processor.transform import Processor
from routers.dependencies import get_processor
from schemas import ErrorResponse, Image, OptimiseConfig, Quality, ResizeConfig, TransformationConfig
from utils.format_detect import detect_format, mime_type_for
from utils.url_fetch import fetch_image

router = APIRouter(
    responses={
        status: {"model": ErrorResponse}
        for status in (400, 413, 415, 422, 500)
    },
)

NEXT_GEN_FORMATS = (AVIF_MIME, WEBP_MIME)


@router.get("/img/{url:path}/optimise")
async def optimise(url: str, request: Request, processor: Processor = Depends(get_processor)):
    """Optimise the image keeping its size."""
    src = await _read_source(url)
    result = await processor.optimise(_build_config(request, src, OptimiseConfig()))
    return _build_response(result)


@router.get("/img/{url:path}/resize")
async def resize(
    url: str,
    request: Request,
    size: Optional[str] = None,
    processor: Processor = Depends(get_processor),
):
    """Resize preserving aspect ratio. size is "W", "xH" or "WxH"."""
    size = _require_size(size)
    src = await _read_source(url)
    result = await processor.resize(_build_config(request, src, ResizeConfig(size=size)))
    return _build_response(result)


@router.get("/img/{url:path}/fit")
async def fit(
    url: str,
    request: Request,
    size: Optional[str] = None,
    processor: Processor = Depends(get_processor),
):
    """Resize to exactly WxH, cropping what doesn't fit."""
    size = _require_size(size)
    compute_fit_target(size)
    src = await _read_source(url)
    result = await processor.fit_to_size(_build_config(request, src, ResizeConfig(size=size)))
    return _build_response(result)


@router.get("/img/{url:path}/asis")
async def asis(url: str):
    """Return the source image untouched."""
    src = await _read_source(url)
    return _build_response(src)


def get_quality(request: Request) -> Quality:
    """Quality tier from client hints.

    - Save-Data: on      → LOW
    - dppx >= 2          → LOW
    - dppx >= 3          → LOWER
    High density screens hide compression artifacts, so they get less.
    """
    quality = Quality.DEFAULT
    if request.headers.get("save-data", "").strip().lower() == "on":
        quality = Quality.LOW

    dppx = request.query_params.get("dppx")
    if dppx:
        try:
            ratio = float(dppx)
        except ValueError:
            raise BadRequestError(f"Param dppx should be a number, got '{dppx}'", dppx=dppx)
        if ratio >= 3:
            quality = Quality.LOWER
        elif ratio >= 2:
            quality = Quality.LOW

    return quality


def get_supported_formats(request: Request) -> dict[str, bool]:
    """Next-gen formats listed in the Accept header."""
    accepted = set()
    for part in request.headers.get("accept", "").split(","):
        accepted.add(part.split(";", 1)[0].strip().lower())
    return {mime: mime in accepted for mime in NEXT_GEN_FORMATS}


def _require_size(size: Optional[str]) -> str:
    if not size:
        raise BadRequestError("Param size is required")
    return size


async def _read_source(url: str) -> Image:
    data = await fetch_image(url)
    detect_format(data)
    return Image(id=url, data=data)


def _build_config(request: Request, src: Image, payload) -> TransformationConfig:
    return TransformationConfig(
        src=src,
        quality=get_quality(request),
        supported_formats=get_supported_formats(request),
        config=payload,
    )


def _build_response(image: Image) -> Response:
    return Response(
        content=image.data,
        media_type=image.mime_type or mime_type_for(image.data),
        headers={
            "Cache-Control": f"public, max-age={settings.cache_max_age}",
            "Vary": "Accept",
        },
    )

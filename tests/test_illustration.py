"""Tests for the illustration/photo classifier."""

from contextlib import asynccontextmanager

import pytest

from exceptions import IdentifyError
from processor.illustration import colors_in_half, is_illustration
from schemas import Image, Info


def _png(size, width=200, height=200):
    return Image(id="test.png", data=b"\x00" * size), Info(format="PNG", quality=100, width=width, height=height, size=size)


@pytest.mark.asyncio
async def test_small_png_is_illustration(make_codec):
    codec = make_codec()
    image, info = _png(20 * 1024 - 1)
    assert await is_illustration(codec, image, info) is True
    assert codec.calls == []


@pytest.mark.asyncio
async def test_large_png_is_not_illustration(make_codec):
    codec = make_codec(counts=[100])
    image, info = _png(1024 * 1024 + 1, width=4000, height=4000)
    assert await is_illustration(codec, image, info) is False
    assert codec.calls == []


@pytest.mark.asyncio
async def test_dense_png_is_not_illustration(make_codec):
    """More than one byte per pixel means photographic detail."""
    codec = make_codec(counts=[100])
    image, info = _png(50 * 1024, width=100, height=100)
    assert await is_illustration(codec, image, info) is False
    assert codec.calls == []


@pytest.mark.asyncio
async def test_dominant_background_two_colors(make_codec):
    """95% background + one flat color is an illustration."""
    codec = make_codec(counts=[2000, 38000])
    image, info = _png(30 * 1024, width=200, height=200)
    assert await is_illustration(codec, image, info) is True
    assert codec.released


@pytest.mark.asyncio
async def test_many_even_colors_is_photo(make_codec):
    # 2000 colors with 20 px each: ~1000 colors needed for half, 50% of all colors
    codec = make_codec(counts=[20] * 2000)
    image, info = _png(30 * 1024, width=200, height=200)
    assert await is_illustration(codec, image, info) is False


@pytest.mark.asyncio
async def test_too_many_colors_is_photo(make_codec):
    codec = make_codec(counts=[1] * 30001)
    image, info = _png(100 * 1024, width=400, height=400)
    assert await is_illustration(codec, image, info) is False


@pytest.mark.asyncio
async def test_few_colors_in_half_among_many(make_codec):
    """Needed colors are <= 2% of all colors even though more than 10."""
    # 20 heavy colors hold ~80% of the pixels, 1000 light colors the rest
    counts = [1600] * 20 + [8] * 1000
    codec = make_codec(counts=counts)
    image, info = _png(30 * 1024, width=200, height=200)
    assert await is_illustration(codec, image, info) is True


@pytest.mark.asyncio
async def test_large_image_is_downscaled(make_codec):
    codec = make_codec(counts=[250000])
    image, info = _png(200 * 1024, width=1000, height=800)
    await is_illustration(codec, image, info)
    assert codec.decoded.scaled_to == (500, 400)


@pytest.mark.asyncio
async def test_image_at_pixel_limit_not_downscaled(make_codec):
    codec = make_codec(counts=[250000])
    image, info = _png(200 * 1024, width=500, height=500)
    await is_illustration(codec, image, info)
    assert codec.decoded.scaled_to is None


@pytest.mark.asyncio
async def test_decoded_image_released_on_error(make_codec):
    codec = make_codec()
    original_decode = codec.decode

    @asynccontextmanager
    async def failing_decode(image, info=None):
        async with original_decode(image, info) as decoded:

            async def broken_histogram():
                raise IdentifyError("histogram failed")

            decoded.histogram = broken_histogram
            yield decoded

    codec.decode = failing_decode
    image, info = _png(30 * 1024)
    with pytest.raises(IdentifyError):
        await is_illustration(codec, image, info)
    assert codec.released


# --- colors_in_half ---


def test_colors_in_half_without_background():
    # 20 colors of 5% each: the 12th is visited after half is already covered
    assert colors_in_half([50] * 20, 1000) == 12


def test_colors_in_half_with_background():
    assert colors_in_half([9500, 500], 10000) == 1


def test_colors_in_half_single_color():
    assert colors_in_half([100], 100) == 0

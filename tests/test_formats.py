"""Tests for output format negotiation and the quality heuristic."""

import pytest

from processor.formats import (
    AVIF_MIME,
    MAX_AVIF_TARGET_SIZE,
    WEBP_MIME,
    choose_output_format,
    compute_quality,
    format_directives,
    quality_directives,
)
from schemas import Directive, Info, Quality

BOTH = {AVIF_MIME: True, WEBP_MIME: True}


def _info(fmt="JPEG", quality=90, width=800, height=600, illustration=False):
    return Info(format=fmt, quality=quality, width=width, height=height, illustration=illustration)


# --- choose_output_format ---


def test_avif_preferred_when_both_supported():
    assert choose_output_format(_info(), 300, 200, BOTH) == ("avif", AVIF_MIME)


def test_webp_when_only_webp_supported():
    assert choose_output_format(_info(), 300, 200, {WEBP_MIME: True}) == ("webp", WEBP_MIME)


def test_source_format_when_nothing_supported():
    assert choose_output_format(_info(), 300, 200, {}) == ("", "")


def test_explicitly_unsupported_is_ignored():
    supported = {AVIF_MIME: False, WEBP_MIME: False}
    assert choose_output_format(_info(), 300, 200, supported) == ("", "")


def test_no_avif_for_gif():
    assert choose_output_format(_info(fmt="GIF"), 300, 200, BOTH) == ("webp", WEBP_MIME)


def test_no_avif_for_illustration():
    source = _info(fmt="PNG", quality=100, illustration=True)
    assert choose_output_format(source, 300, 200, BOTH) == ("webp", WEBP_MIME)


def test_no_avif_at_area_ceiling():
    assert choose_output_format(_info(), 2000, 2000, BOTH) == ("webp", WEBP_MIME)
    assert 2000 * 2000 == MAX_AVIF_TARGET_SIZE


def test_avif_just_below_area_ceiling():
    assert choose_output_format(_info(), 2000, 1999, BOTH) == ("avif", AVIF_MIME)


def test_no_avif_for_zero_target():
    assert choose_output_format(_info(), 0, 0, BOTH) == ("webp", WEBP_MIME)


@pytest.mark.parametrize("width,height", [(16383, 100), (100, 16383), (20000, 20000)])
def test_no_webp_for_huge_sources(width, height):
    source = _info(width=width, height=height)
    assert choose_output_format(source, 300, 200, {WEBP_MIME: True}) == ("", "")


def test_webp_just_below_dimension_ceiling():
    source = _info(width=16382, height=16382)
    assert choose_output_format(source, 300, 200, {WEBP_MIME: True}) == ("webp", WEBP_MIME)


# --- format_directives ---


def test_format_directives_illustration():
    directives = format_directives(_info(fmt="PNG", illustration=True))
    assert directives == [
        Directive("-define", "webp:lossless=true"),
        Directive("-define", "webp:method=6"),
    ]


def test_format_directives_photo():
    assert format_directives(_info()) == [Directive("-define", "webp:method=6")]


def test_format_directives_gif():
    assert format_directives(_info(fmt="GIF")) == []


# --- compute_quality ---


@pytest.mark.parametrize("source_quality,expected", [(90, 70), (86, 70), (85, 60), (80, 60), (76, 60), (75, 50), (70, 50)])
def test_avif_quality_bands(source_quality, expected):
    assert compute_quality(_info(quality=source_quality), Quality.DEFAULT, AVIF_MIME) == expected


def test_avif_quality_tier_adjusted():
    assert compute_quality(_info(quality=90), Quality.LOW, AVIF_MIME) == 60
    assert compute_quality(_info(quality=90), Quality.LOWER, AVIF_MIME) == 50


@pytest.mark.parametrize("mime", [WEBP_MIME, ""])
def test_lossless_source_gets_82(mime):
    assert compute_quality(_info(fmt="PNG", quality=100), Quality.DEFAULT, mime) == 82


def test_lossless_source_tier_adjusted():
    source = _info(fmt="PNG", quality=100)
    assert compute_quality(source, Quality.LOW, WEBP_MIME) == 72
    assert compute_quality(source, Quality.LOWER, WEBP_MIME) == 62


def test_default_tier_keeps_codec_default():
    assert compute_quality(_info(quality=75), Quality.DEFAULT, WEBP_MIME) == 0


def test_low_tier_reuses_source_quality():
    assert compute_quality(_info(quality=75), Quality.LOW, WEBP_MIME) == 65
    assert compute_quality(_info(quality=75), Quality.LOWER, "") == 55


def test_zero_source_quality_stays_unset():
    assert compute_quality(_info(quality=0), Quality.LOWER, WEBP_MIME) == 0


# --- quality_directives ---


def test_quality_directive_omitted_when_zero():
    assert quality_directives(_info(quality=75), Quality.DEFAULT, WEBP_MIME) == []


def test_quality_directive_emitted():
    assert quality_directives(_info(fmt="PNG", quality=100), Quality.DEFAULT, "") == [
        Directive("-quality", "82")
    ]


def test_quality_directive_clamped_to_one():
    assert quality_directives(_info(quality=5), Quality.LOWER, WEBP_MIME) == [
        Directive("-quality", "1")
    ]

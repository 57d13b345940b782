"""Tests for settings, directive parsing and codec selection."""

import pytest

from config import DEFAULT_TUNING, ProcessorConfig, Settings, parse_directives
from exceptions import ImgfitError
from processor.imagemagick import ImageMagickCodec
from processor.pillow import PillowCodec
from processor.registry import create_codec, create_processor
from schemas import Directive


def test_parse_directives_pairs_values():
    assert parse_directives("-define webp:alpha-quality=80 -strip +repage") == (
        Directive("-define", "webp:alpha-quality=80"),
        Directive("-strip"),
        Directive("+repage"),
    )


def test_parse_directives_quoted_value():
    assert parse_directives('-define "png:exclude-chunk=a b"') == (
        Directive("-define", "png:exclude-chunk=a b"),
    )


def test_parse_directives_empty():
    assert parse_directives("") == ()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("IMGFIT_CODEC", "pillow")
    monkeypatch.setenv("IMGFIT_STRICT_GEOMETRY", "true")
    monkeypatch.setenv("IMGFIT_ADDITIONAL_ARGS", "-define webp:alpha-quality=80")
    settings = Settings()
    assert settings.codec == "pillow"
    assert settings.strict_geometry is True
    assert settings.max_file_size_bytes == 32 * 1024 * 1024

    config = settings.processor_config()
    assert config.strict_geometry is True
    assert config.extra_directives == (Directive("-define", "webp:alpha-quality=80"),)
    assert config.tuning == DEFAULT_TUNING


def test_processor_config_is_frozen():
    config = ProcessorConfig()
    with pytest.raises(AttributeError):
        config.debug = True


def test_create_imagemagick_codec():
    codec = create_codec(Settings(codec="imagemagick", im_convert="/opt/im/convert", tool_timeout_seconds=10))
    assert isinstance(codec, ImageMagickCodec)
    assert codec.convert_cmd == "/opt/im/convert"
    assert codec.timeout == 10


def test_create_imagemagick_codec_without_timeout():
    codec = create_codec(Settings(codec="imagemagick"))
    assert codec.timeout is None


def test_create_pillow_codec():
    assert isinstance(create_codec(Settings(codec="Pillow")), PillowCodec)


def test_unknown_codec():
    with pytest.raises(ImgfitError):
        create_codec(Settings(codec="gimp"))


def test_create_processor_injects_config():
    processor = create_processor(Settings(codec="pillow", debug=True))
    assert isinstance(processor.codec, PillowCodec)
    assert processor.config.debug is True

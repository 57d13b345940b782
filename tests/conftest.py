import io
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient
from PIL import Image as PILImage

from main import app
from processor.base import Codec, DecodedImage
from processor.transform import Processor
from routers.dependencies import get_processor
from schemas import Image, Info


class FakeDecodedImage(DecodedImage):
    def __init__(self, width, height, counts):
        self.width = width
        self.height = height
        self.counts = counts
        self.scaled_to = None

    async def scale(self, width, height):
        self.scaled_to = (width, height)
        self.width = width
        self.height = height

    async def histogram(self):
        return list(self.counts)


class FakeCodec(Codec):
    """Codec double that records calls and returns canned results."""

    name = "fake"

    def __init__(
        self,
        info=None,
        output=b"transformed",
        counts=(),
        identify_error=None,
        transform_error=None,
    ):
        self.info = info or Info(format="JPEG", quality=90, opaque=True, width=400, height=200, size=1000)
        self.output = output
        self.counts = counts
        self.identify_error = identify_error
        self.transform_error = transform_error
        self.calls = []
        self.decoded = None
        self.released = False
        self.closed = False

    async def identify(self, image):
        self.calls.append("identify")
        if self.identify_error:
            raise self.identify_error
        return self.info

    async def transform(self, image, directives, output_format=""):
        self.calls.append("transform")
        self.directives = list(directives)
        self.output_format = output_format
        if self.transform_error:
            raise self.transform_error
        return self.output

    @asynccontextmanager
    async def decode(self, image, info=None):
        self.calls.append("decode")
        info = info or self.info
        self.decoded = FakeDecodedImage(info.width, info.height, self.counts)
        try:
            yield self.decoded
        finally:
            self.released = True

    def available(self):
        return {"fake": True}

    def close(self):
        self.closed = True


@pytest.fixture
def make_codec():
    """Factory for FakeCodec instances."""
    return FakeCodec


@pytest.fixture
def fake_codec():
    return FakeCodec()


@pytest.fixture
def client(fake_codec):
    """FastAPI test client backed by a FakeCodec processor."""
    processor = Processor(fake_codec)
    app.dependency_overrides[get_processor] = lambda: processor
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def make_image_bytes(fmt="PNG", size=(50, 50), color=(128, 64, 32), mode="RGB", **save_kwargs):
    img = PILImage.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded Pillow-generated images."""
    return make_image_bytes


@pytest.fixture
def sample_png():
    return make_image_bytes("PNG")


@pytest.fixture
def sample_jpeg():
    return make_image_bytes("JPEG", size=(120, 80), quality=85)


@pytest.fixture
def source_image(sample_png):
    return Image(id="http://site.com/img.png", data=sample_png)

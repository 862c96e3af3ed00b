import numpy as np
import pytest
import requests
from PIL import Image

from bg_removal import codecs
from bg_removal.codecs import DecodeError, EncodeError, OpenCVCodec, PillowCodec, get_codec, load_source
from conftest import FakeResponse, data_url, decode_rgba, make_buffer, png_bytes

CODECS = [PillowCodec(), OpenCVCodec()]


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_decode_keeps_rgb_channel_order(codec):
    data = png_bytes(4, 2, background=(255, 0, 0), square=(0, 0, 1, 1), square_color=(0, 0, 255))
    buf = codec.decode(data)

    assert (buf.width, buf.height) == (4, 2)
    assert buf.pixels[0, 0].tolist() == [0, 0, 255, 255]
    assert buf.pixels[1, 3].tolist() == [255, 0, 0, 255]


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_decode_keeps_source_alpha(codec):
    data = png_bytes(2, 1, background=(10, 20, 30, 77), mode="RGBA")
    assert codec.decode(data).pixels[0, 0].tolist() == [10, 20, 30, 77]


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_decode_grayscale(codec):
    data = png_bytes(2, 2, background=128, mode="L")
    assert codec.decode(data).pixels[1, 1].tolist() == [128, 128, 128, 255]


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_decode_rejects_garbage(codec):
    with pytest.raises(DecodeError):
        codec.decode(b"definitely not an image")


def test_pillow_decode_rejects_decompression_bombs(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    with pytest.raises(DecodeError):
        PillowCodec().decode(png_bytes(20, 20))


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_png_encoding_is_lossless(codec):
    buf = make_buffer(3, 2, rgb=(12, 34, 56), alpha=0)
    buf.pixels[1, 2] = (200, 100, 50, 128)

    decoded = decode_rgba(codec.encode(buf, "png"))

    assert np.array_equal(decoded, buf.pixels)


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_webp_encoding(codec):
    out = codec.encode(make_buffer(8, 8, rgb=(0, 128, 0)), "image/webp", quality=0.8)
    assert out[:4] == b"RIFF" and out[8:12] == b"WEBP"


@pytest.mark.parametrize("codec", CODECS, ids=lambda c: c.name)
def test_encode_rejects_unknown_format_and_quality(codec):
    with pytest.raises(EncodeError):
        codec.encode(make_buffer(1, 1), "gif")
    with pytest.raises(EncodeError):
        codec.encode(make_buffer(1, 1), "webp", quality=1.5)


def test_get_codec():
    assert isinstance(get_codec("opencv"), OpenCVCodec)
    with pytest.raises(ValueError):
        get_codec("canvas")


# ---------------------------------------------
# Source loading
# ---------------------------------------------

def test_load_source_passes_bytes_through():
    assert load_source(bytearray(b"abc")) == b"abc"


def test_load_source_data_url():
    assert load_source(data_url(b"\x89PNG")) == b"\x89PNG"


def test_load_source_rejects_broken_data_url():
    with pytest.raises(DecodeError):
        load_source("data:image/png;base64,@@@")


def test_load_source_downloads_urls(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse(content=b"image-bytes")

    monkeypatch.setattr(codecs.requests, "get", fake_get)

    assert load_source("https://cdn.example.com/a.png", timeout=5) == b"image-bytes"
    assert calls == [("https://cdn.example.com/a.png", 5)]


def test_load_source_wraps_download_errors(monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(codecs.requests, "get", fake_get)

    with pytest.raises(DecodeError, match="unreachable"):
        load_source("https://cdn.example.com/a.png")


def test_load_source_rejects_http_errors(monkeypatch):
    monkeypatch.setattr(codecs.requests, "get", lambda url, timeout: FakeResponse(status_code=404))
    with pytest.raises(DecodeError):
        load_source("http://cdn.example.com/missing.png")


def test_load_source_rejects_unknown_sources():
    with pytest.raises(DecodeError):
        load_source("ftp://example.com/a.png")

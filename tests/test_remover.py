import pytest

from bg_removal import codecs
from bg_removal.codecs import DecodeError, OpenCVCodec
from bg_removal.pixel_buffer import InvalidOptionRange, RemovalOptions
from bg_removal.remover import has_white_background, remove_background_and_upload, remove_white_background
from conftest import FakeResponse, data_url, decode_rgba, png_bytes


def test_removes_white_background(logo_png):
    out = decode_rgba(remove_white_background(logo_png))

    assert out.shape == (20, 20, 4)
    assert out[0, 0, 3] == 0
    assert out[19, 19, 3] == 0
    # inside the square, away from the feathered rim
    assert out[10, 10].tolist() == [0, 0, 0, 255]
    # rim of the square touches transparent pixels
    assert out[5, 10, 3] == 204


def test_opencv_codec_gives_same_pixels(logo_png):
    options = RemovalOptions(feathering=False)
    via_pillow = decode_rgba(remove_white_background(logo_png, options))
    via_opencv = decode_rgba(remove_white_background(logo_png, options, codec=OpenCVCodec()))
    assert (via_pillow == via_opencv).all()


def test_accepts_data_urls(logo_png):
    out = decode_rgba(remove_white_background(data_url(logo_png), RemovalOptions(feathering=False)))
    assert out[5, 5, 3] == 255


def test_webp_output(logo_png):
    out = remove_white_background(logo_png, output_format="webp", quality=0.9)
    assert out[8:12] == b"WEBP"


def test_invalid_options_fail_before_decoding():
    with pytest.raises(InvalidOptionRange):
        remove_white_background(png_bytes(), RemovalOptions(threshold=300))


def test_undecodable_source():
    with pytest.raises(DecodeError):
        remove_white_background(b"not an image")


def test_remove_and_upload(logo_png):
    uploads = []

    def upload(data, filename):
        uploads.append((data[:8], filename))
        return f"https://storage.example.com/{filename}"

    url = remove_background_and_upload(logo_png, upload, "logo.png")

    assert url == "https://storage.example.com/logo.png"
    assert uploads == [(b"\x89PNG\r\n\x1a\n", "logo.png")]


def test_has_white_background():
    assert has_white_background(png_bytes(square=(0, 0, 2, 2)))
    # 10x10 of 20x20 is dark: only 75% white
    assert not has_white_background(png_bytes(square=(5, 5, 15, 15)))


def test_has_white_background_swallows_errors():
    assert has_white_background(b"garbage") is False


def test_has_white_background_forwards_timeout(monkeypatch):
    timeouts = []

    def fake_get(url, timeout):
        timeouts.append(timeout)
        return FakeResponse(content=png_bytes())

    monkeypatch.setattr(codecs.requests, "get", fake_get)

    assert has_white_background("https://img/white.png", timeout=2.5)
    assert timeouts == [2.5]

import base64
from io import BytesIO

import numpy as np
import pytest
import requests
from PIL import Image

from bg_removal.pixel_buffer import PixelBuffer


def make_buffer(width, height, rgb=(0, 0, 0), alpha=255):
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, :3] = rgb
    pixels[:, :, 3] = alpha
    return PixelBuffer.from_array(pixels)


def png_bytes(width=20, height=20, background=(255, 255, 255), square=None, square_color=(0, 0, 0), mode="RGB"):
    """White image with an optional dark square given as (left, top, right, bottom)"""
    img = Image.new(mode, (width, height), background)
    if square:
        left, top, right, bottom = square
        for y in range(top, bottom):
            for x in range(left, right):
                img.putpixel((x, y), square_color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def data_url(data: bytes, mime_type="image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_rgba(data: bytes) -> np.ndarray:
    return np.array(Image.open(BytesIO(data)).convert("RGBA"))


class FakeResponse:
    def __init__(self, json_data=None, status_code=200, content=b""):
        self._json = json_data
        self.status_code = status_code
        self.content = content

    def json(self):
        if self._json is None:
            raise ValueError("No JSON")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def logo_png():
    # 20x20 white image with a black 10x10 square in the middle
    return png_bytes(square=(5, 5, 15, 15))

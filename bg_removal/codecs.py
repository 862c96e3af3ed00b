"""
Codec adapters between encoded images and PixelBuffer.

PillowCodec works the way a browser canvas does (decode to RGBA, draw, read
back), OpenCVCodec works on the raw decoded buffer and has to deal with
OpenCV's BGR(A) channel order itself.
"""
import base64
import binascii
import logging
from io import BytesIO

import cv2
import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

from bg_removal.pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 30
OUTPUT_FORMATS = ("png", "webp")
MEDIA_TYPES = {"png": "image/png", "webp": "image/webp"}


class DecodeError(Exception):
    """Source could not be fetched or decoded into pixels"""


class EncodeError(Exception):
    """Pixels could not be encoded into the requested format"""


# ---------------------------------------------
# SOURCE LOADING
# ---------------------------------------------

def load_source(source, timeout: float = DOWNLOAD_TIMEOUT) -> bytes:
    """Return raw image bytes from bytes, a data: URL or an http(s) URL"""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)

    if not isinstance(source, str) or not source:
        raise DecodeError(f"Unsupported image source: {type(source).__name__}")

    if source.startswith("data:"):
        header, _, payload = source.partition(",")
        if ";base64" not in header:
            raise DecodeError("Only base64 data URLs are supported")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 data URL: {e}") from e

    if source.startswith(("http://", "https://")):
        logger.info(f"Downloading image from: {source}")
        try:
            response = requests.get(source, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DecodeError(f"Failed to download image from {source}: {e}") from e
        return response.content

    raise DecodeError(f"Unsupported image source: {source[:40]}")


def normalize_format(output_format: str) -> str:
    fmt = (output_format or "png").lower()
    if fmt.startswith("image/"):
        fmt = fmt[len("image/"):]
    if fmt not in OUTPUT_FORMATS:
        raise EncodeError(f"Unsupported output format: {output_format}. Use one of {OUTPUT_FORMATS}")
    return fmt


def _quality_percent(quality: float) -> int:
    if not 0 <= quality <= 1:
        raise EncodeError(f"quality must be in [0, 1], got {quality}")
    return int(round(quality * 100))


# ---------------------------------------------
# PILLOW ADAPTER
# ---------------------------------------------

class PillowCodec:
    name = "pillow"

    def decode(self, data: bytes) -> PixelBuffer:
        try:
            img = Image.open(BytesIO(data))
            img = img.convert("RGBA")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise DecodeError(f"Not a decodable image: {e}") from e

        width, height = img.size
        if not width or not height:
            raise DecodeError("Could not determine image dimensions")
        return PixelBuffer(width, height, img.tobytes())

    def encode(self, buffer: PixelBuffer, output_format: str = "png", quality: float = 0.95) -> bytes:
        fmt = normalize_format(output_format)
        img = Image.frombytes("RGBA", (buffer.width, buffer.height), buffer.to_bytes())
        out = BytesIO()
        try:
            if fmt == "webp":
                img.save(out, format="WEBP", quality=_quality_percent(quality))
            else:
                img.save(out, format="PNG")
        except (OSError, ValueError) as e:
            raise EncodeError(f"Failed to encode {fmt}: {e}") from e
        return out.getvalue()


# ---------------------------------------------
# OPENCV (RAW BUFFER) ADAPTER
# ---------------------------------------------

class OpenCVCodec:
    name = "opencv"

    def decode(self, data: bytes) -> PixelBuffer:
        nparr = np.frombuffer(data, np.uint8)
        img = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED) if nparr.size else None
        if img is None:
            raise DecodeError("Not a decodable image")
        if img.size == 0:
            raise DecodeError("Could not determine image dimensions")

        if img.dtype != np.uint8:
            # 16-bit PNGs
            img = (img / 257).astype(np.uint8)

        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.shape[2] == 3:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        else:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        return PixelBuffer.from_array(rgba)

    def encode(self, buffer: PixelBuffer, output_format: str = "png", quality: float = 0.95) -> bytes:
        fmt = normalize_format(output_format)
        bgra = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGRA)
        params = []
        if fmt == "webp":
            params = [cv2.IMWRITE_WEBP_QUALITY, max(1, _quality_percent(quality))]

        success, encoded = cv2.imencode(f".{fmt}", bgra, params)
        if not success:
            raise EncodeError(f"Failed to encode {fmt}")
        return encoded.tobytes()


CODECS = {
    PillowCodec.name: PillowCodec,
    OpenCVCodec.name: OpenCVCodec,
}


def get_codec(name: str = "pillow"):
    try:
        return CODECS[name]()
    except KeyError:
        raise ValueError(f"Unknown codec: {name}. Available codecs: {list(CODECS.keys())}")

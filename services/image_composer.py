import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

import config
from bg_removal.codecs import DecodeError, load_source

logger = logging.getLogger(__name__)

COLOR_MAP = {
    "black": "#1a1a1a",
    "white": "#ffffff",
    "navy": "#001f3f",
    "gray": "#808080",
    "red": "#ff0000",
    "blue": "#0000ff",
}
DEFAULT_COLOR = "black"


class CompositionError(Exception):
    """Mockup composition failed"""


@dataclass
class MockupOptions:
    design_url: Optional[str] = None
    tshirt_color: str = DEFAULT_COLOR
    width: int = 1200
    height: int = 1600
    position_top: int = 300
    position_left: Optional[int] = None
    design_width: int = 800
    design_height: int = 800

    @property
    def left(self) -> int:
        if self.position_left is None:
            return (self.width - self.design_width) // 2
        return self.position_left


def resolve_color(tshirt_color: str) -> str:
    return COLOR_MAP.get((tshirt_color or DEFAULT_COLOR).lower(), COLOR_MAP[DEFAULT_COLOR])


def fit_contain(img: Image.Image, width: int, height: int) -> Image.Image:
    """Resize keeping aspect ratio and centre on a transparent width x height box"""
    img = img.convert("RGBA")
    fitted = ImageOps.contain(img, (width, height), method=Image.Resampling.LANCZOS)
    box = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    box.paste(fitted, ((width - fitted.width) // 2, (height - fitted.height) // 2))
    return box


def _to_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class ImageComposer:

    def __init__(self, timeout: float = None):
        self.timeout = timeout or config.DOWNLOAD_TIMEOUT

    def download_image(self, url: str) -> bytes:
        try:
            return load_source(url, timeout=self.timeout)
        except DecodeError as e:
            raise CompositionError(f"Failed to download image from {url}: {e}") from e

    def _open(self, data: bytes) -> Image.Image:
        try:
            img = Image.open(BytesIO(data))
            img.load()
            return img
        except (UnidentifiedImageError, OSError) as e:
            raise CompositionError(f"Invalid design image: {e}") from e

    def create_simple_mockup(self, design_bytes: bytes, options: MockupOptions) -> bytes:
        design = fit_contain(self._open(design_bytes), options.design_width, options.design_height)

        mockup = Image.new("RGBA", (options.width, options.height), resolve_color(options.tshirt_color))
        layer = Image.new("RGBA", mockup.size, (0, 0, 0, 0))
        layer.paste(design, (options.left, options.position_top))
        mockup = Image.alpha_composite(mockup, layer)
        return _to_png(mockup)

    def compose_tshirt_mockup(self, options: MockupOptions, design_bytes: bytes = None) -> bytes:
        """Place a design onto a plain coloured t-shirt canvas and return PNG bytes"""
        if design_bytes is None:
            if not options.design_url:
                raise CompositionError("No design provided")
            design_bytes = self.download_image(options.design_url)
        try:
            return self.create_simple_mockup(design_bytes, options)
        except CompositionError:
            raise
        except (ValueError, OSError) as e:
            raise CompositionError(f"Failed to compose t-shirt mockup: {e}") from e

    def create_transparent_design(self, image_url: str) -> bytes:
        img = self._open(self.download_image(image_url))
        return _to_png(img.convert("RGBA"))

    def resize_image(self, image_url: str, width: int, height: int) -> bytes:
        img = self._open(self.download_image(image_url))
        return _to_png(fit_contain(img, width, height))

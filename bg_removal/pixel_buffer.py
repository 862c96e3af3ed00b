"""
White/light background removal over raw RGBA pixel buffers.

The transform runs three passes in a fixed order:

    threshold -> smoothing (optional) -> feathering (optional)

Each pass reads from a snapshot of its input and returns a new buffer, so no
pass ever sees values that were already rewritten by itself. The algorithm is
a global brightness cutoff plus local filtering; it does not detect subjects
and is far less accurate than ML based removal.
"""
from dataclasses import dataclass
import numpy as np


DEFAULT_THRESHOLD = 240
DEFAULT_SMOOTHING_RADIUS = 1
FEATHER_NUMERATOR = 4
FEATHER_DENOMINATOR = 5  # alpha * 0.8
CHUNK_PIXELS = 65536  # pixels per band when a pass works band by band

ALPHA_PRESERVE = "preserve"
ALPHA_OPAQUE = "opaque"
ALPHA_POLICIES = (ALPHA_PRESERVE, ALPHA_OPAQUE)


# ---------------------------------------------
# ERRORS
# ---------------------------------------------

class PixelBufferError(ValueError):
    """Base class for pixel transform errors"""


class InvalidBufferShape(PixelBufferError):
    """Buffer length does not match width * height * 4"""


class InvalidOptionRange(PixelBufferError):
    """A transform option is outside its allowed range"""


# ---------------------------------------------
# DATA MODEL
# ---------------------------------------------

class PixelBuffer:
    """
    Rectangular grid of RGBA bytes.

    Pixel (x, y) lives at data[(y * width + x) * 4 : +4] in R, G, B, A order.
    Internally the bytes are held as a uint8 array of shape (height, width, 4).
    """

    CHANNELS = 4

    def __init__(self, width: int, height: int, data):
        if not isinstance(width, (int, np.integer)) or not isinstance(height, (int, np.integer)):
            raise InvalidBufferShape("width and height must be integers")
        if width <= 0 or height <= 0:
            raise InvalidBufferShape(f"Invalid dimensions {width}x{height}")

        if isinstance(data, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        else:
            flat = np.asarray(data)
            if flat.dtype != np.uint8:
                flat = np.clip(flat, 0, 255).astype(np.uint8)
            flat = flat.reshape(-1)

        expected = width * height * self.CHANNELS
        if flat.size != expected:
            raise InvalidBufferShape(
                f"Buffer holds {flat.size} bytes, expected {expected} for {width}x{height} RGBA"
            )

        self.width = int(width)
        self.height = int(height)
        self.pixels = flat.reshape(self.height, self.width, self.CHANNELS).copy()

    @classmethod
    def from_bytes(cls, width: int, height: int, data) -> "PixelBuffer":
        return cls(width, height, data)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build a buffer from an (height, width, 4) array"""
        if array.ndim != 3 or array.shape[2] != cls.CHANNELS:
            raise InvalidBufferShape(f"Expected an (H, W, 4) array, got shape {array.shape}")
        height, width = array.shape[:2]
        return cls(width, height, array)

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3].copy()

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.pixels)

    def __len__(self):
        return self.pixels.size

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self):
        return f"PixelBuffer({self.width}x{self.height})"


@dataclass(frozen=True)
class RemovalOptions:
    """
    Per-call options for the transform.

    alpha_policy:
        "preserve" leaves the alpha of pixels at or below the threshold as it was,
        "opaque" forces it to 255.
    feather_opaque:
        when True, fully opaque pixels touching a transparent neighbour are
        feathered too; when False only partially transparent pixels are.
    """
    threshold: int = DEFAULT_THRESHOLD
    smoothing_radius: int = DEFAULT_SMOOTHING_RADIUS
    feathering: bool = True
    alpha_policy: str = ALPHA_PRESERVE
    feather_opaque: bool = True

    def __post_init__(self):
        validate_threshold(self.threshold)
        validate_radius(self.smoothing_radius)
        validate_alpha_policy(self.alpha_policy)


def validate_threshold(threshold):
    if isinstance(threshold, bool) or not isinstance(threshold, (int, np.integer)):
        raise InvalidOptionRange(f"threshold must be an integer, got {threshold!r}")
    if not 0 <= threshold <= 255:
        raise InvalidOptionRange(f"threshold must be in [0, 255], got {threshold}")


def validate_radius(radius):
    if isinstance(radius, bool) or not isinstance(radius, (int, np.integer)):
        raise InvalidOptionRange(f"smoothing radius must be an integer, got {radius!r}")
    if radius < 0:
        raise InvalidOptionRange(f"smoothing radius must be >= 0, got {radius}")


def validate_alpha_policy(policy):
    if policy not in ALPHA_POLICIES:
        raise InvalidOptionRange(f"alpha policy must be one of {ALPHA_POLICIES}, got {policy!r}")


# ---------------------------------------------
# PASSES
# ---------------------------------------------

def _brightness_mask(pixels: np.ndarray, threshold: int) -> np.ndarray:
    # (R + G + B) / 3 > threshold, kept in integers
    rgb_sum = pixels[:, :, :3].sum(axis=2, dtype=np.uint16)
    return rgb_sum > 3 * threshold


def _band_rows(width: int) -> int:
    return max(1, CHUNK_PIXELS // width)


def _threshold_inplace(pixels: np.ndarray, threshold: int, alpha_policy: str):
    height, width = pixels.shape[:2]
    rows = _band_rows(width)
    for y0 in range(0, height, rows):
        band = pixels[y0:y0 + rows]
        bright = _brightness_mask(band, threshold)
        alpha = band[:, :, 3]
        alpha[bright] = 0
        if alpha_policy == ALPHA_OPAQUE:
            alpha[~bright] = 255


def _smooth_inplace(pixels: np.ndarray, radius: int):
    height, width = pixels.shape[:2]
    if radius == 0 or height <= 2 * radius or width <= 2 * radius:
        return

    count = (2 * radius + 1) ** 2
    total_dtype = np.uint32 if count * 255 < 2**32 else np.uint64
    inner_width = width - 2 * radius
    rows = _band_rows(width)

    # pre-pass copy of the `radius` rows above the current band; rows below it are still untouched
    carry = pixels[:radius].copy()
    for y0 in range(radius, height - radius, rows):
        y1 = min(y0 + rows, height - radius)
        n = y1 - y0
        source = np.concatenate([carry, pixels[y0:y1 + radius]])

        alpha = source[radius:radius + n, radius:radius + inner_width, 3]
        edge = (alpha > 0) & (alpha < 255)
        carry = source[n:n + radius].copy()
        if not edge.any():
            continue

        totals = np.zeros((n, inner_width, PixelBuffer.CHANNELS), dtype=total_dtype)
        for dy in range(2 * radius + 1):
            for dx in range(2 * radius + 1):
                totals += source[dy:dy + n, dx:dx + inner_width]
        np.floor_divide(totals, count, out=totals)

        target = pixels[y0:y1, radius:radius + inner_width]
        target[edge] = totals[edge].astype(np.uint8)


def _feather_inplace(pixels: np.ndarray, feather_opaque: bool):
    height, width = pixels.shape[:2]
    alpha = pixels[:, :, 3]
    # pre-pass snapshot: feathering can turn alpha 1 into 0
    transparent = alpha == 0
    rows = _band_rows(width)

    for y0 in range(0, height, rows):
        y1 = min(y0 + rows, height)
        band = transparent[y0:y1]
        touches = np.zeros_like(band)
        touches[1:] |= band[:-1]
        touches[:-1] |= band[1:]
        if y0 > 0:
            touches[0] |= transparent[y0 - 1]
        if y1 < height:
            touches[-1] |= transparent[y1]
        touches[:, 1:] |= band[:, :-1]
        touches[:, :-1] |= band[:, 1:]

        band_alpha = alpha[y0:y1]
        if feather_opaque:
            hit = band_alpha > 0
        else:
            hit = (band_alpha > 0) & (band_alpha < 255)
        hit &= touches
        softened = band_alpha[hit].astype(np.uint16) * FEATHER_NUMERATOR // FEATHER_DENOMINATOR
        band_alpha[hit] = softened.astype(np.uint8)


def threshold_pass(buffer: PixelBuffer, threshold: int = DEFAULT_THRESHOLD,
                   alpha_policy: str = ALPHA_PRESERVE) -> PixelBuffer:
    """Make every pixel brighter than `threshold` fully transparent. RGB is untouched."""
    validate_threshold(threshold)
    validate_alpha_policy(alpha_policy)

    out = buffer.copy()
    _threshold_inplace(out.pixels, threshold, alpha_policy)
    return out


def smoothing_pass(buffer: PixelBuffer, radius: int = DEFAULT_SMOOTHING_RADIUS) -> PixelBuffer:
    """
    Replace every edge pixel (0 < alpha < 255) by the floor of the per-channel
    mean of its (2r+1) x (2r+1) neighbourhood.

    Pixels closer than `radius` to the image border are left as they are,
    since their neighbourhood is incomplete.
    """
    validate_radius(radius)

    out = buffer.copy()
    _smooth_inplace(out.pixels, radius)
    return out


def feathering_pass(buffer: PixelBuffer, feather_opaque: bool = True) -> PixelBuffer:
    """
    Soften edges: any candidate pixel with a fully transparent 4-connected
    neighbour has its alpha reduced to floor(alpha * 0.8).

    Border pixels only look at the neighbours that exist.
    """
    out = buffer.copy()
    _feather_inplace(out.pixels, feather_opaque)
    return out


def transform(buffer: PixelBuffer, options: RemovalOptions = None) -> PixelBuffer:
    """
    Run threshold, smoothing and feathering in order. The input is never modified.

    All passes work in place on a single copy of the input, band by band,
    so scratch memory stays bounded whatever the image size.
    """
    if options is None:
        options = RemovalOptions()
    if not isinstance(buffer, PixelBuffer):
        raise InvalidBufferShape(f"Expected a PixelBuffer, got {type(buffer).__name__}")

    result = buffer.copy()
    _threshold_inplace(result.pixels, options.threshold, options.alpha_policy)
    if options.smoothing_radius > 0:
        _smooth_inplace(result.pixels, options.smoothing_radius)
    if options.feathering:
        _feather_inplace(result.pixels, options.feather_opaque)
    return result


def white_ratio(buffer: PixelBuffer, threshold: int = DEFAULT_THRESHOLD) -> float:
    """Fraction of pixels brighter than `threshold`"""
    validate_threshold(threshold)
    rows = _band_rows(buffer.width)
    bright = 0
    for y0 in range(0, buffer.height, rows):
        bright += int(_brightness_mask(buffer.pixels[y0:y0 + rows], threshold).sum())
    return bright / (buffer.width * buffer.height)

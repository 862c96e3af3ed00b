import logging

from bg_removal.codecs import DOWNLOAD_TIMEOUT, get_codec, load_source
from bg_removal.pixel_buffer import DEFAULT_THRESHOLD, RemovalOptions, transform, white_ratio

logger = logging.getLogger(__name__)

WHITE_BACKGROUND_RATIO = 0.8


def remove_white_background(source, options: RemovalOptions = None, output_format: str = "png",
                            quality: float = 0.95, codec=None, timeout: float = DOWNLOAD_TIMEOUT) -> bytes:
    """
    Remove a white/light background from an image.

    Args:
        source: image bytes, a data: URL or an http(s) URL
        options: transform options (threshold, smoothing, feathering ...)
        output_format: "png" or "webp"
        quality: 0-1, only used by lossy formats
        codec: codec adapter instance, Pillow by default

    Returns:
        Encoded image bytes with the background made transparent
    """
    if options is None:
        options = RemovalOptions()
    if codec is None:
        codec = get_codec("pillow")

    image_bytes = load_source(source, timeout=timeout)
    buffer = codec.decode(image_bytes)
    logger.info(f"Processing {buffer.width}x{buffer.height} image with threshold {options.threshold}")

    result = transform(buffer, options)
    encoded = codec.encode(result, output_format, quality)
    logger.info(f"Background removal complete. Output size: {len(encoded)} bytes")
    return encoded


def remove_background_and_upload(source, upload_fn, filename: str, options: RemovalOptions = None,
                                 **kwargs) -> str:
    """Remove the background and hand the result to `upload_fn(bytes, filename)`, returning its URL"""
    transparent = remove_white_background(source, options, **kwargs)
    return upload_fn(transparent, filename)


def has_white_background(source, threshold: int = DEFAULT_THRESHOLD, codec=None,
                         timeout: float = DOWNLOAD_TIMEOUT) -> bool:
    """True when more than 80% of the pixels are brighter than `threshold`"""
    if codec is None:
        codec = get_codec("pillow")
    try:
        buffer = codec.decode(load_source(source, timeout=timeout))
        return white_ratio(buffer, threshold) > WHITE_BACKGROUND_RATIO
    except Exception as e:
        logger.error(f"Error checking background: {e}")
        return False

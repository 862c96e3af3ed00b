import logging
from io import BytesIO

import requests
from PIL import Image

import config
from bg_removal.codecs import DecodeError, EncodeError, get_codec, load_source
from bg_removal.pixel_buffer import PixelBufferError, RemovalOptions
from bg_removal.remover import remove_white_background

logger = logging.getLogger(__name__)

PROVIDER_ENDPOINTS = {
    "remove.bg": ("https://api.remove.bg/v1.0/removebg", "X-Api-Key"),
    "clipdrop": ("https://clipdrop-api.co/remove-background/v1", "x-api-key"),
    "photoroom": ("https://sdk.photoroom.com/v1/segment", "x-api-key"),
}
LOCAL_PROVIDERS = ("rembg", "threshold")
PROVIDERS = tuple(PROVIDER_ENDPOINTS) + LOCAL_PROVIDERS

API_KEYS = {
    "remove.bg": lambda: config.REMOVE_BG_API_KEY,
    "clipdrop": lambda: config.CLIPDROP_API_KEY,
    "photoroom": lambda: config.PHOTOROOM_API_KEY,
}


class BackgroundRemovalError(Exception):
    """Background removal failed"""


class BackgroundRemovalService:
    """
    Remove image backgrounds through one of several providers.

    remove.bg / clipdrop / photoroom are hosted APIs and need an API key,
    rembg runs an ML model locally, threshold uses the local white
    background remover.
    """

    def __init__(self, provider: str = None, api_key: str = None,
                 options: RemovalOptions = None, timeout: float = None):
        self._provider = (provider or config.BG_REMOVAL_PROVIDER).lower()
        if self._provider not in PROVIDERS:
            raise BackgroundRemovalError(f"Unsupported provider: {self._provider}")
        key_lookup = API_KEYS.get(self._provider)
        self.api_key = api_key or (key_lookup() if key_lookup else None)
        self.options = options or RemovalOptions()
        self.timeout = timeout or config.DOWNLOAD_TIMEOUT
        self._rembg_session = None

    @property
    def provider(self) -> str:
        return self._provider

    def is_configured(self) -> bool:
        if self._provider in LOCAL_PROVIDERS:
            return True
        return bool(self.api_key)

    def remove_background(self, source) -> bytes:
        """Remove the background from an image URL / bytes and return transparent PNG bytes"""
        try:
            image_bytes = load_source(source, timeout=self.timeout)
        except DecodeError as e:
            raise BackgroundRemovalError(f"Failed to remove background: {e}") from e

        if self._provider == "threshold":
            return self._remove_with_threshold(image_bytes)
        if self._provider == "rembg":
            return self._remove_with_rembg(image_bytes)
        return self._remove_with_api(image_bytes)

    def _remove_with_api(self, image_bytes: bytes) -> bytes:
        if not self.api_key:
            raise BackgroundRemovalError(
                f"{self._provider} API key is required. Set the matching *_API_KEY environment variable."
            )
        url, header = PROVIDER_ENDPOINTS[self._provider]
        data = {"size": "auto"} if self._provider == "remove.bg" else None
        try:
            response = requests.post(
                url,
                headers={header: self.api_key},
                files={"image_file": ("image", image_bytes)},
                data=data,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise BackgroundRemovalError(f"Failed to remove background: {e}") from e
        return response.content

    def _remove_with_rembg(self, image_bytes: bytes) -> bytes:
        # rembg pulls in onnxruntime, only load it when this provider is used
        from rembg import new_session, remove

        if self._rembg_session is None:
            self._rembg_session = new_session(config.REMBG_MODEL)
        try:
            output_image = remove(Image.open(BytesIO(image_bytes)), session=self._rembg_session)
        except (OSError, ValueError) as e:
            raise BackgroundRemovalError(f"Failed to remove background: {e}") from e
        buf = BytesIO()
        output_image.save(buf, format="PNG")
        return buf.getvalue()

    def _remove_with_threshold(self, image_bytes: bytes) -> bytes:
        logger.warning("Local background removal is limited. Consider using a proper API service.")
        try:
            return remove_white_background(
                image_bytes,
                self.options,
                codec=get_codec(config.BG_REMOVAL_CODEC),
            )
        except (DecodeError, EncodeError, PixelBufferError) as e:
            raise BackgroundRemovalError(f"Failed to remove background: {e}") from e

import base64
import logging
import random
import time
from threading import Lock
from typing import List, Optional

from google import genai
from google.genai import errors, types

import config
from services.image_generation import (
    MAX_SEED,
    GeneratedImage,
    GenerationError,
    transparent_prompt,
)

logger = logging.getLogger(__name__)

# Rate limiting configuration
MIN_REQUEST_INTERVAL = 5  # Minimum 5 seconds between requests
MAX_RETRIES = 3
RETRY_DELAY = 10  # seconds to wait before retry on rate limit


def extract_image_from_response(response) -> Optional[bytes]:
    """Extract image bytes from a Gemini response"""
    try:
        for part in response.candidates[0].content.parts:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.mime_type and inline.mime_type.startswith("image/"):
                data = inline.data
                return base64.b64decode(data) if isinstance(data, str) else data
    except (AttributeError, IndexError, TypeError) as e:
        logger.warning(f"Error extracting image: {e}")
    return None


def to_data_url(img_bytes: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(img_bytes).decode('ascii')}"


class GeminiImageClient:
    """Image generation through Gemini on Vertex AI. Images come back as data: URLs."""

    def __init__(self, model: str = "gemini-2.5-flash-image", client=None):
        self.model = model
        self._client = client
        self._lock = Lock()
        self._last_request = 0.0

    @property
    def client(self):
        """Lazy load the client so credentials are only read on first use"""
        if self._client is None:
            credentials = config.load_credentials()
            if credentials is None or not config.PROJECT_ID:
                raise GenerationError("Vertex AI is not configured (credentials or GOOGLE_CLOUD_PROJECT missing)")
            self._client = genai.Client(
                vertexai=True,
                project=config.PROJECT_ID,
                location=config.LOCATION,
                credentials=credentials,
            )
            logger.info(f"✅ Vertex AI initialized successfully for project: {config.PROJECT_ID}")
        return self._client

    def _throttle(self):
        """Throttle requests to avoid rate limiting"""
        with self._lock:
            elapsed = time.time() - self._last_request
            if elapsed < MIN_REQUEST_INTERVAL:
                wait_time = MIN_REQUEST_INTERVAL - elapsed
                logger.info(f"Throttling: waiting {wait_time:.1f} seconds...")
                time.sleep(wait_time)
            self._last_request = time.time()

    def _generate_with_retry(self, prompt: str, seed: int, max_retries: int = MAX_RETRIES) -> bytes:
        for attempt in range(max_retries):
            try:
                self._throttle()
                logger.info(f"Attempt {attempt + 1}/{max_retries}: Generating image...")
                response = self.client.models.generate_content(
                    model=self.model,
                    contents=[prompt],
                    config=types.GenerateContentConfig(
                        response_modalities=["IMAGE"],
                        seed=seed,
                    ),
                )
            except errors.APIError as e:
                if attempt == max_retries - 1:
                    if e.code == 429:
                        raise GenerationError(
                            f"Rate limit exceeded after {max_retries} retries. Please try again in a few minutes."
                        ) from e
                    raise GenerationError(f"Generation failed: {e}") from e
                wait_time = (RETRY_DELAY if e.code == 429 else 5) * (attempt + 1)
                logger.warning(f"Error: {e}. Retrying in {wait_time} seconds...")
                time.sleep(wait_time)
                continue

            img_bytes = extract_image_from_response(response)
            if img_bytes:
                return img_bytes
            logger.warning("No image data in response")

        raise GenerationError("Image generation failed after all retries")

    def generate_image(self, prompt: str, width: int = 1024, height: int = 1024,
                       seed: Optional[int] = None, **_) -> GeneratedImage:
        # Gemini picks the output size itself; width/height are accepted for interface parity
        if seed is None:
            seed = random.randint(0, MAX_SEED)
        img_bytes = self._generate_with_retry(prompt, seed)
        return GeneratedImage(image_url=to_data_url(img_bytes), seed=seed, prompt=prompt)

    def generate_images(self, prompts: List[str], **options) -> List[GeneratedImage]:
        # Sequential: requests are throttled anyway
        return [self.generate_image(prompt, **options) for prompt in prompts]

    def generate_transparent_image(self, prompt: str, **options) -> GeneratedImage:
        return self.generate_image(transparent_prompt(prompt), **options)

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from typing import List, Optional

import requests

import config

logger = logging.getLogger(__name__)

TRANSPARENT_SUFFIX = ", transparent background, PNG, no background, isolated design"
MAX_BATCH_WORKERS = 4
MAX_SEED = 2**31 - 1


class GenerationError(Exception):
    """Image generation request failed"""


@dataclass
class GeneratedImage:
    image_url: str
    seed: int
    prompt: str

    def to_dict(self):
        return asdict(self)


def transparent_prompt(prompt: str) -> str:
    return f"{prompt}{TRANSPARENT_SUFFIX}"


class ImageGenerationClient:
    """Client for the Forge image generation HTTP API"""

    def __init__(self, api_key: str, base_url: str, timeout: float = 120):
        if not api_key:
            raise GenerationError("BUILT_IN_FORGE_API_KEY environment variable is not set")
        if not base_url:
            raise GenerationError("BUILT_IN_FORGE_API_URL environment variable is not set")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def generate_image(self, prompt: str, width: int = 1024, height: int = 1024,
                       seed: Optional[int] = None, num_inference_steps: int = 30,
                       guidance_scale: float = 7.5) -> GeneratedImage:
        payload = {
            "prompt": prompt,
            "width": width or 1024,
            "height": height or 1024,
            "num_inference_steps": num_inference_steps or 30,
            "guidance_scale": guidance_scale or 7.5,
            "seed": seed,
        }

        try:
            response = self.session.post(
                f"{self.base_url}/v1/images/generate",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            message = str(e)
            if e.response is not None:
                try:
                    body = e.response.json()
                except ValueError:
                    body = None
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
            raise GenerationError(f"Image generation error: {status} - {message}") from e
        except requests.RequestException as e:
            raise GenerationError(f"Image generation error: {e}") from e

        try:
            body = response.json()
            first = (body.get("data") or [{}])[0]
            image_url = first.get("url") or body.get("url")
            result_seed = first.get("seed") or body.get("seed") or random.randint(0, MAX_SEED)
        except (ValueError, AttributeError, IndexError, TypeError) as e:
            raise GenerationError(f"Invalid response: {e}") from e

        if not image_url:
            raise GenerationError("No image URL in response")

        return GeneratedImage(image_url=image_url, seed=result_seed, prompt=prompt)

    def generate_images(self, prompts: List[str], **options) -> List[GeneratedImage]:
        """Generate one image per prompt concurrently. Results keep the prompt order."""
        with ThreadPoolExecutor(max_workers=min(MAX_BATCH_WORKERS, max(len(prompts), 1))) as pool:
            futures = [pool.submit(self.generate_image, prompt, **options) for prompt in prompts]
            return [f.result() for f in futures]

    def generate_transparent_image(self, prompt: str, **options) -> GeneratedImage:
        return self.generate_image(transparent_prompt(prompt), **options)


_client = None


def get_image_client():
    """Lazily build the configured image generation client"""
    global _client
    if _client is None:
        if config.IMAGE_PROVIDER == "gemini":
            from services.gemini_client import GeminiImageClient
            _client = GeminiImageClient(config.GEMINI_IMAGE_MODEL)
        elif config.IMAGE_PROVIDER == "forge":
            _client = ImageGenerationClient(
                config.FORGE_API_KEY,
                config.FORGE_API_URL,
                timeout=config.GENERATION_TIMEOUT,
            )
        else:
            raise GenerationError(f"Unsupported image provider: {config.IMAGE_PROVIDER}")
    return _client

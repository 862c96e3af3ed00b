import logging
import random
import re
import string
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

import config

logger = logging.getLogger(__name__)

DEFAULT_CREATOR_ID = 1
DEFAULT_CREATOR_NAME = "tshirt.is"
SLUG_WORDS = 6
SLUG_SUFFIX_LENGTH = 6
SLUG_ALPHABET = string.ascii_lowercase + string.digits

# Placement of the design on the storefront mockup
DESIGN_PLACEMENT = {
    "position_width": 1200,
    "position_height": 1200,
    "position_top": 100,
    "position_left": 300,
}


class PersistenceError(Exception):
    """Design record could not be read or written"""


@dataclass
class DesignRecord:
    id: int
    prompt: str
    image_url: str
    logo_url: str
    slug: str
    creator_id: int
    creator_name: str

    @classmethod
    def from_row(cls, row: dict) -> "DesignRecord":
        return cls(
            id=row["id"],
            prompt=row["prompt"],
            image_url=row["image_url"],
            logo_url=row["logo_url"],
            slug=row["slug"],
            creator_id=row["creator_id"],
            creator_name=row["creator_name"],
        )

    def to_dict(self):
        return {
            "id": self.id,
            "prompt": self.prompt,
            "imageUrl": self.image_url,
            "logoUrl": self.logo_url,
            "slug": self.slug,
            "creatorId": self.creator_id,
            "creatorName": self.creator_name,
        }


def generate_slug(prompt: str, rng: random.Random = None) -> str:
    """URL friendly slug from the first words of a prompt plus a random suffix"""
    rng = rng or random
    words = prompt.split(" ")[:SLUG_WORDS]
    slug = re.sub(r"[^a-z0-9-]", "", "-".join(words).lower())
    suffix = "".join(rng.choice(SLUG_ALPHABET) for _ in range(SLUG_SUFFIX_LENGTH))
    return f"{slug}-{suffix}"


class DesignStore:
    """Stores generated designs in the Supabase `designs` table through its REST API"""

    def __init__(self, supabase_url: str = None, service_role_key: str = None, timeout: float = 30):
        supabase_url = supabase_url or config.SUPABASE_URL
        service_role_key = service_role_key or config.SUPABASE_SERVICE_ROLE_KEY
        if not supabase_url or not service_role_key:
            raise PersistenceError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        self.rest_url = f"{supabase_url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        })

    def get_creator(self, user_id: Optional[int]) -> Tuple[int, str]:
        if not user_id:
            return DEFAULT_CREATOR_ID, DEFAULT_CREATOR_NAME
        try:
            response = self.session.get(
                f"{self.rest_url}/users",
                params={"id": f"eq.{user_id}", "select": "id,name"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise PersistenceError(f"Failed to load user {user_id}: {e}") from e

        rows = response.json()
        if not rows:
            return DEFAULT_CREATOR_ID, DEFAULT_CREATOR_NAME
        user = rows[0]
        return user["id"], user.get("name") or "User"

    def save_design(self, prompt: str, image_url: str, logo_url: str,
                    user_id: Optional[int] = None) -> DesignRecord:
        creator_id, creator_name = self.get_creator(user_id)
        row = {
            "prompt": prompt,
            "image_url": image_url,
            "logo_url": logo_url,
            "slug": generate_slug(prompt),
            "creator_id": creator_id,
            "creator_name": creator_name,
            "is_public": True,
            "is_featured": False,
            **DESIGN_PLACEMENT,
        }
        try:
            response = self.session.post(
                f"{self.rest_url}/designs",
                json=row,
                headers={"Prefer": "return=representation"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise PersistenceError(f"Failed to save design: {e}") from e

        saved = response.json()
        if isinstance(saved, list):
            if not saved:
                raise PersistenceError("Failed to save design: empty response")
            saved = saved[0]
        logger.info(f"Saved design {saved.get('id')} with slug {saved.get('slug')}")
        return DesignRecord.from_row(saved)

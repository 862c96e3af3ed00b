import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from image_apis.mockup_api import generate_complete_design
from services.design_store import DesignStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Designs"])


class DesignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    tshirt_color: str = Field(default="black", alias="tshirtColor")
    user_id: Optional[int] = Field(default=None, alias="userId")
    remove_background: bool = Field(default=False, alias="removeBackground")


def create_design(request: DesignRequest) -> dict:
    generated = generate_complete_design(
        request.prompt,
        request.tshirt_color,
        remove_background=request.remove_background,
    )
    record = DesignStore().save_design(
        request.prompt,
        image_url=generated["imageUrl"],
        logo_url=generated["logoUrl"],
        user_id=request.user_id,
    )
    return record.to_dict()


@router.post("/designs")
async def generate_design(request: DesignRequest):
    """Generate a design for the prompt and store it in the designs table"""
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Missing required field: prompt")

    logger.info(f'Generating design for prompt: "{request.prompt}"')
    try:
        design = await asyncio.to_thread(create_design, request)
    except Exception as e:
        logger.error(f"Design generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate design: {e}")

    return {"success": True, "design": design}

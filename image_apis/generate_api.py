import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from services.image_generation import get_image_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Image Generation"])


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None
    width: int = 1024
    height: int = 1024
    seed: Optional[int] = None


class BatchGenerateRequest(BaseModel):
    prompts: Optional[List[str]] = None
    width: int = 1024
    height: int = 1024


@router.post("/generate")
async def generate(request: GenerateRequest):
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Missing required field: prompt")

    logger.info(f'Generating image for prompt: "{request.prompt}"')
    try:
        result = await asyncio.to_thread(
            get_image_client().generate_image,
            request.prompt,
            width=request.width,
            height=request.height,
            seed=request.seed,
        )
    except Exception as e:
        logger.error(f"Image generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate image: {e}")

    return {"success": True, "data": result.to_dict()}


@router.post("/generate-transparent")
async def generate_transparent(request: GenerateRequest):
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Missing required field: prompt")

    logger.info(f'Generating transparent image for prompt: "{request.prompt}"')
    try:
        result = await asyncio.to_thread(
            get_image_client().generate_transparent_image,
            request.prompt,
            width=request.width,
            height=request.height,
            seed=request.seed,
        )
    except Exception as e:
        logger.error(f"Transparent image generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate transparent image: {e}")

    return {"success": True, "data": result.to_dict()}


@router.post("/generate-batch")
async def generate_batch(request: BatchGenerateRequest):
    if not request.prompts:
        raise HTTPException(status_code=400, detail="Missing required field: prompts (array)")

    logger.info(f"Generating {len(request.prompts)} images in batch")
    try:
        results = await asyncio.to_thread(
            get_image_client().generate_images,
            request.prompts,
            width=request.width,
            height=request.height,
        )
    except Exception as e:
        logger.error(f"Batch generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate images: {e}")

    return {"success": True, "data": [r.to_dict() for r in results], "count": len(results)}

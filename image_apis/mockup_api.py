import asyncio
import base64
import logging
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from services.background_removal import BackgroundRemovalService
from services.image_composer import ImageComposer, MockupOptions
from services.image_generation import get_image_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["T-Shirt Mockups"])

composer = ImageComposer()


class MockupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    design_url: Optional[str] = Field(default=None, alias="designUrl")
    tshirt_color: str = Field(default="black", alias="tshirtColor")
    position_top: int = Field(default=300, alias="positionTop")
    position_left: Optional[int] = Field(default=None, alias="positionLeft")
    design_width: int = Field(default=800, alias="designWidth")
    design_height: int = Field(default=800, alias="designHeight")
    remove_background: bool = Field(default=False, alias="removeBackground")


class CompleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    tshirt_color: str = Field(default="black", alias="tshirtColor")
    width: int = 1024
    height: int = 1024
    remove_background: bool = Field(default=False, alias="removeBackground")


def build_mockup(options: MockupOptions, remove_background: bool = False) -> bytes:
    """Compose a mockup, stripping the design's background first when asked to"""
    design_bytes = None
    if remove_background:
        design_bytes = BackgroundRemovalService().remove_background(options.design_url)
    return composer.compose_tshirt_mockup(options, design_bytes=design_bytes)


def generate_complete_design(prompt: str, tshirt_color: str = "black", width: int = 1024,
                             height: int = 1024, remove_background: bool = False) -> dict:
    """Generate a logo for the prompt and put it on a t-shirt mockup"""
    logo = get_image_client().generate_transparent_image(prompt, width=width, height=height)
    mockup = build_mockup(
        MockupOptions(design_url=logo.image_url, tshirt_color=tshirt_color),
        remove_background=remove_background,
    )
    mockup_base64 = base64.b64encode(mockup).decode("ascii")
    return {
        "logoUrl": logo.image_url,
        "imageUrl": f"data:image/png;base64,{mockup_base64}",
        "prompt": prompt,
        "seed": logo.seed,
    }


@router.post("/generate-mockup", summary="Place a design onto a t-shirt mockup")
async def generate_mockup(request: MockupRequest):
    """
    Downloads the design at `designUrl`, optionally removes its background,
    and composites it onto a plain t-shirt canvas.

    Returns:
    - PNG stream of the mockup.
    """
    if not request.design_url:
        raise HTTPException(status_code=400, detail="Missing required field: designUrl")

    logger.info(f"Generating t-shirt mockup for design: {request.design_url}")
    options = MockupOptions(
        design_url=request.design_url,
        tshirt_color=request.tshirt_color,
        position_top=request.position_top,
        position_left=request.position_left,
        design_width=request.design_width,
        design_height=request.design_height,
    )
    try:
        mockup = await asyncio.to_thread(build_mockup, options, request.remove_background)
    except Exception as e:
        logger.error(f"Mockup generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate mockup: {e}")

    return StreamingResponse(BytesIO(mockup), media_type="image/png")


@router.post("/generate-complete", summary="Generate a design and its t-shirt mockup")
async def generate_complete(request: CompleteRequest):
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Missing required field: prompt")

    logger.info(f'Generating complete design for prompt: "{request.prompt}"')
    try:
        data = await asyncio.to_thread(
            generate_complete_design,
            request.prompt,
            request.tshirt_color,
            request.width,
            request.height,
            request.remove_background,
        )
    except Exception as e:
        logger.error(f"Complete design generation error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate complete design: {e}")

    return {"success": True, "data": data}

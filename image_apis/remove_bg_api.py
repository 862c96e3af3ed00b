import asyncio
import io
import logging
from typing import Optional

from fastapi import APIRouter, UploadFile, File, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

import config
from bg_removal.codecs import DecodeError, EncodeError, MEDIA_TYPES, get_codec, normalize_format
from bg_removal.pixel_buffer import PixelBufferError, RemovalOptions
from bg_removal.remover import has_white_background, remove_white_background

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/remove-bg", tags=["Background Removal"])


class RemoveBgRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    threshold: int = 240
    smoothing: int = 1
    feathering: bool = True
    alpha_policy: str = Field(default="preserve", alias="alphaPolicy")
    output_format: str = Field(default="png", alias="outputFormat")
    quality: float = 0.95
    codec: Optional[str] = None


class CheckBackgroundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    threshold: int = 240


def _run_removal(source, threshold, smoothing, feathering, alpha_policy,
                 output_format, quality, codec_name) -> StreamingResponse:
    """Run the white background remover and map its errors onto HTTP errors"""
    try:
        fmt = normalize_format(output_format)
        codec = get_codec(codec_name or config.BG_REMOVAL_CODEC)
        options = RemovalOptions(
            threshold=threshold,
            smoothing_radius=smoothing,
            feathering=feathering,
            alpha_policy=alpha_policy,
        )
        output = remove_white_background(
            source, options, output_format=fmt, quality=quality,
            codec=codec, timeout=config.DOWNLOAD_TIMEOUT,
        )
    except DecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid image: {e}")
    except (EncodeError, ValueError) as e:
        if isinstance(e, PixelBufferError):
            # transform specific errors stay in the logs
            logger.error(f"Background removal failed: {e}")
            raise HTTPException(status_code=500, detail="Image processing failed")
        raise HTTPException(status_code=400, detail=str(e))

    return StreamingResponse(io.BytesIO(output), media_type=MEDIA_TYPES[fmt])


@router.post("")
async def remove_bg(
    file: UploadFile = File(...),
    threshold: int = Query(240, description="Brightness above which pixels become transparent (0-255)"),
    smoothing: int = Query(1, description="Edge smoothing radius, 0 disables smoothing"),
    feathering: bool = Query(True, description="Soften alpha next to transparent pixels"),
    alpha_policy: str = Query("preserve", description="'preserve' keeps source alpha, 'opaque' forces 255"),
    output_format: str = Query("png", description="png or webp"),
    quality: float = Query(0.95, description="0-1, webp only"),
    codec: Optional[str] = Query(None, description="pillow or opencv"),
):
    """Remove a white/light background from an uploaded image"""
    try:
        image_bytes = await file.read()
        return await asyncio.to_thread(
            _run_removal, image_bytes, threshold, smoothing, feathering,
            alpha_policy, output_format, quality, codec,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/url")
async def remove_bg_from_url(request: RemoveBgRequest):
    """Remove a white/light background from an image URL"""
    if not request.image_url:
        raise HTTPException(status_code=400, detail="Missing required field: imageUrl")
    try:
        return await asyncio.to_thread(
            _run_removal, request.image_url, request.threshold, request.smoothing,
            request.feathering, request.alpha_policy, request.output_format,
            request.quality, request.codec,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/check")
async def check_white_background(request: CheckBackgroundRequest):
    """Report whether more than 80% of the image is white/light"""
    if not request.image_url:
        raise HTTPException(status_code=400, detail="Missing required field: imageUrl")
    result = await asyncio.to_thread(
        has_white_background, request.image_url, request.threshold,
        timeout=config.DOWNLOAD_TIMEOUT,
    )
    return {"success": True, "hasWhiteBackground": result}

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from datetime import datetime, timezone
import logging
import time
import uvicorn

import config
config.configure_logging()

from image_apis.remove_bg_api import router as remove_bg_router
from image_apis.generate_api import router as generate_router
from image_apis.mockup_api import router as mockup_router
from image_apis.design_api import router as design_router

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

app = FastAPI(
    title="T-Shirt Image Generation API",
    version="1.0.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"[{datetime.now(timezone.utc).isoformat()}] {request.method} {request.url.path}")
    return await call_next(request)


# Register routers
app.include_router(remove_bg_router)
app.include_router(generate_router)
app.include_router(mockup_router)
app.include_router(design_router)


@app.get("/")
async def root():
    return {
        "name": "tshirt-image-gen",
        "version": "1.0.0",
        "description": "AI image generation server for t-shirt designs",
        "endpoints": {
            "health": "GET /health",
            "generate": "POST /api/generate",
            "generate_transparent": "POST /api/generate-transparent",
            "generate_batch": "POST /api/generate-batch",
            "generate_mockup": "POST /api/generate-mockup",
            "generate_complete": "POST /api/generate-complete",
            "remove_bg": "POST /api/remove-bg",
            "remove_bg_url": "POST /api/remove-bg/url",
            "check_white_background": "POST /api/remove-bg/check",
            "designs": "POST /api/designs",
        }
    }


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - STARTED_AT,
        "image_provider": config.IMAGE_PROVIDER,
        "bg_removal_provider": config.BG_REMOVAL_PROVIDER,
    }


if __name__ == "__main__":

    # Run the server (no reload here; use CLI for reload)
    logger.info(f"🚀 Image generation server running on http://localhost:{config.PORT}")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
    # For hot reload, run: uvicorn main:app --host 0.0.0.0 --port 3001 --reload

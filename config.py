import os
import logging
from dotenv import load_dotenv
from google.oauth2 import service_account

load_dotenv()

logger = logging.getLogger(__name__)

# Server
PORT = int(os.getenv("PORT", 3001))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Image generation: "forge" (HTTP API) or "gemini" (Vertex AI)
IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "forge").lower()
FORGE_API_KEY = os.getenv("BUILT_IN_FORGE_API_KEY")
FORGE_API_URL = os.getenv("BUILT_IN_FORGE_API_URL")
GENERATION_TIMEOUT = float(os.getenv("GENERATION_TIMEOUT", 120))

# Vertex AI Configuration
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT")
LOCATION = os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")
CREDENTIALS_PATH = os.getenv(
    "GOOGLE_APPLICATION_CREDENTIALS",
    os.path.join(os.path.dirname(__file__), "service-account.json"),
)
GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")

# Background removal
BG_REMOVAL_PROVIDER = os.getenv("BG_REMOVAL_PROVIDER", "threshold").lower()
BG_REMOVAL_CODEC = os.getenv("BG_REMOVAL_CODEC", "pillow").lower()
REMOVE_BG_API_KEY = os.getenv("REMOVE_BG_API_KEY")
CLIPDROP_API_KEY = os.getenv("CLIPDROP_API_KEY")
PHOTOROOM_API_KEY = os.getenv("PHOTOROOM_API_KEY")
REMBG_MODEL = os.getenv("REMBG_MODEL", "isnet-general-use")
DOWNLOAD_TIMEOUT = float(os.getenv("DOWNLOAD_TIMEOUT", 30))

# Persistence
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")


def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def load_credentials():
    """Load service account credentials for Vertex AI"""
    try:
        return service_account.Credentials.from_service_account_file(
            CREDENTIALS_PATH,
            scopes=["https://www.googleapis.com/auth/cloud-platform"],
        )
    except FileNotFoundError:
        logger.error(f"❌ Credentials file not found at {CREDENTIALS_PATH}")
        logger.error("Please set GOOGLE_APPLICATION_CREDENTIALS to the service account JSON file.")
        return None

# runtime settings read from the environment (and an optional .env file)
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# read .env if present, but don't clobber the real environment
load_dotenv(override=False)

GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
TEXT_MODEL = os.getenv("ACEEXAM_TEXT_MODEL", "gemini-3-flash-preview")
IMAGE_MODEL = os.getenv("ACEEXAM_IMAGE_MODEL", "gemini-2.5-flash-image")

RETRIES = int(os.getenv("ACEEXAM_RETRIES", "2"))
RETRY_DELAY = float(os.getenv("ACEEXAM_RETRY_DELAY", "2.0"))
REQUEST_TIMEOUT = float(os.getenv("ACEEXAM_REQUEST_TIMEOUT", "120"))
DIAGRAM_WORKERS = max(1, int(os.getenv("ACEEXAM_DIAGRAM_WORKERS", "4")))

OUTPUT_DIR = Path(os.getenv("ACEEXAM_OUTPUT_DIR", "outputs"))

# unicode ttf for the study guide; common DejaVuSans locations are tried when unset
FONT_PATH = os.getenv("ACEEXAM_FONT_PATH")

PRODUCT_NAME = "AceExam"


def get_env_api_key() -> Optional[str]:
    """Return the api key configured in the environment, if any"""
    # looked up on every call so a key exported after startup is picked up
    key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if key and key.strip():
        return key.strip()
    return None

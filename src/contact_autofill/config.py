"""Configuration for the contact form autofill engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from a .env file when present.
load_dotenv()

DATASET_ROOT = Path(os.getenv("AUTOFILL_OUTDIR", "runs"))

DEFAULT_BROWSER = os.getenv("AUTOFILL_BROWSER", "chromium").lower()

OPENAI_MODEL = os.getenv("AUTOFILL_OPENAI_MODEL", "gpt-4o-mini")

PHONE_DELIMITER = os.getenv("AUTOFILL_PHONE_DELIMITER", "-")

POSTAL_CODE_DELIMITER = "-"

# Label picked for "inquiry type" choices when the profile carries none.
DEFAULT_INQUIRY_LABEL = os.getenv("AUTOFILL_INQUIRY_LABEL", "案件のご依頼")

MULTI_ROLE_SEPARATOR = " ・ "

MAX_FRAME_DEPTH = int(os.getenv("AUTOFILL_MAX_FRAME_DEPTH", "4"))

DEFAULT_TIMEOUT_MS = int(os.getenv("AUTOFILL_TIMEOUT_MS", "5000"))

FORM_HTML_MAX_CHARS = 80000

CONTACT_DELAY_RANGE_S = (1.0, 3.0)

VIEWPORT = {"width": 1280, "height": 900}

NAVIGATION_TIMEOUT_MS = int(os.getenv("AUTOFILL_NAVIGATION_TIMEOUT_MS", "30000"))


def get_openai_api_key() -> str | None:
    """Return the OpenAI API key or None when it is not configured."""
    return os.getenv("OPENAI_API_KEY") or None

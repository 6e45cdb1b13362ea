"""
Configuration, constants, and service initialization.
"""

import os
import re
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
import google.generativeai as genai

# --- LOAD ENV ---
load_dotenv()

# --- LOGGING ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("okidoki")


def log_event(level: int, message: str, **data):
    """Lightweight structured logging helper."""
    try:
        serialized = " | ".join(f"{k}={v}" for k, v in data.items())
        logger.log(level, f"{message}{' | ' + serialized if serialized else ''}")
    except Exception:
        logger.log(level, message)


# --- PATHS ---
DOCUMENTS_DIR = Path(os.getenv("DOCUMENTS_DIR", Path(__file__).parent / "documents"))
DOCUMENTS_DIR.mkdir(parents=True, exist_ok=True)

# --- SELECTION ---
MIN_SELECTION_LENGTH = 3
ANCHOR_OFFSET_Y = 8  # px below the selection's bottom edge
SELECTION_SHOW_DELAY = float(os.getenv("SELECTION_SHOW_DELAY", "1.0"))  # seconds

# --- GENERATION ---
GENERATION_TEMPERATURE = 0.35
MAX_OUTPUT_TOKENS = 8192
IMPROVEMENT_TIMEOUT = float(os.getenv("IMPROVEMENT_TIMEOUT", "60"))  # seconds

DEFAULT_DOCUMENT_TITLE = "Untitled PRD"

# --- API KEYS ---
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

# --- INITIALIZE SERVICES ---

gemini_available = False
if GEMINI_API_KEY:
    genai.configure(api_key=GEMINI_API_KEY)
    gemini_available = True


# --- DOCUMENT HELPERS ---

def slugify_document(name: str) -> str:
    """Convert a document id or title to a filesystem-safe slug."""
    cleaned = name.strip().lower() if name else DEFAULT_DOCUMENT_TITLE.lower()
    cleaned = re.sub(r"[^a-z0-9]+", "-", cleaned).strip("-")
    return cleaned or "untitled"


def resolve_document_title(value: Optional[str]) -> str:
    """Resolve a document title from input, falling back to default."""
    return value.strip() if value and value.strip() else DEFAULT_DOCUMENT_TITLE


def get_document_path(document_id: str) -> Path:
    """Get the file path for a document's markdown."""
    slug = slugify_document(document_id)
    return DOCUMENTS_DIR / f"{slug}.md"

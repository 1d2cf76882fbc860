"""
Configuration for the snaglog client core.

All policy values, limits, and vocabularies in one place.
Change here, not in the orchestration modules.
"""

import os

# --- Remote API ---

API_BASE_URL: str = os.environ.get("SNAGLOG_API_URL", "http://localhost:3001")
HTTP_TIMEOUT_SECONDS: float = float(os.environ.get("SNAGLOG_HTTP_TIMEOUT", "30.0"))

# --- Logging ---

LOG_DEBUG: bool = os.environ.get("SNAGLOG_DEBUG", "").lower() in {"1", "true", "yes"}

# --- Photo Intake ---

MAX_PHOTO_SIZE_MB: float = 10.0

ALLOWED_MIME_TYPES: set[str] = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
}

# Used when the declared type is missing
ALLOWED_EXTENSIONS: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

# Not displayable by generic viewers, converted to JPEG on intake
TRANSCODE_MIME_TYPES: set[str] = {"image/heic", "image/heif"}
TRANSCODE_QUALITY: int = 85

PREVIEW_MAX_SIZE: tuple[int, int] = (512, 512)

# --- Generation Polling ---

POLL_INTERVAL_SECONDS: float = 2.0
POLL_MAX_ATTEMPTS: int = 30

# --- Review Vocabularies ---

ROOMS: list[str] = [
    "Kitchen", "Living Room", "Dining Room", "Master Bedroom", "Bedroom 2",
    "Bedroom 3", "Bedroom 4", "Bathroom", "En-Suite", "WC", "Hallway",
    "Stairs", "Landing", "Utility Room", "Garage", "Garden", "External", "Other",
]

TRADES: list[str] = [
    "Decorator", "Joiner", "Plumber", "Electrician", "Tiler",
    "Plasterer", "Builder", "Roofer", "Glazier", "Other",
]

# --- Checkout ---

REPORT_PRICE_DISPLAY: str = "£19.99"
SUPPORT_EMAIL: str = "hello@snaglog.co.uk"

import os
from pathlib import Path

# --- Configuration ---
# The project root is three levels up from this file
# (backend/bvtc/config.py -> backend/bvtc -> backend -> root)
BASE_DIR = Path(__file__).resolve().parent.parent.parent

FRONTEND_DIR = Path(os.getenv("BVTC_FRONTEND_DIR", str(BASE_DIR / "frontend")))

# --- Backend API Settings ---
# All backend routes live under this prefix (e.g. http://host:8080/bvtc/api/bilibili/list)
API_BASE = os.getenv("BVTC_API_BASE", "http://localhost:8080/bvtc/api/")

HEADERS = {
    'user-agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/96.0.4664.45 Safari/537.36',
    'content-type': 'application/json',
}

# Upper bound for a single request; the upload pipeline can be slow.
REQUEST_TIMEOUT = float(os.getenv("BVTC_REQUEST_TIMEOUT", "300"))

# --- Task Polling & Title Streaming ---
POLL_INTERVAL = float(os.getenv("BVTC_POLL_INTERVAL", "2"))
STREAM_MAX_RETRIES = int(os.getenv("BVTC_STREAM_MAX_RETRIES", "3"))
STREAM_RETRY_DELAY = float(os.getenv("BVTC_STREAM_RETRY_DELAY", "1"))

# --- UI State ---
PAGE_SIZE = int(os.getenv("BVTC_PAGE_SIZE", "10"))
CAPTCHA_COOLDOWN = int(os.getenv("BVTC_CAPTCHA_COOLDOWN", "60"))

# --- Server ---
HOST = os.getenv("BVTC_HOST", "0.0.0.0")
PORT = int(os.getenv("BVTC_PORT", "8000"))
LOG_LEVEL = os.getenv("BVTC_LOG_LEVEL", "INFO").upper()

"""
Backend configuration
"""

import os
from pathlib import Path

# Base paths
ROOT_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))
STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(DATA_DIR / "uploads")))
DB_PATH = os.getenv("DB_PATH", str(DATA_DIR / "oralscreen.db"))

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
STORAGE_DIR.mkdir(parents=True, exist_ok=True)

# API settings
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# CORS origins (frontend URL)
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

# Submission limits
MAX_UPLOAD_IMAGES = int(os.getenv("MAX_UPLOAD_IMAGES", "5"))

# Report rendering
REPORT_FETCH_WORKERS = int(os.getenv("REPORT_FETCH_WORKERS", "4"))

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./posts.db")
UPLOAD_ROOT = Path(os.getenv("UPLOAD_ROOT", "./uploads"))
STATIC_DIR = Path(os.getenv("STATIC_DIR", "./static"))

# Starlette's own per-part limit for plain form fields
MAX_FIELD_BYTES = int(os.getenv("MAX_FIELD_BYTES", str(1024 * 1024)))

BOARD_TITLE = os.getenv("BOARD_TITLE", "/a/ - Random")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))

import os
from dotenv import load_dotenv

load_dotenv()

APP_NAME = "Flying411 Bulk Upload"
APP_VER = "1.0.0"

DB_PATH = os.getenv("DB_PATH", "./flying411_upload.sqlite3")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploaded_files")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", os.path.join(os.getcwd(), "output"))

MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "25"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_ROWS = int(os.getenv("MAX_ROWS", "10000"))
SAMPLE_ROW_COUNT = 5

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

FLYING411_API_URL = os.getenv("FLYING411_API_URL", "https://api.flying411.com/v1").rstrip("/")
FLYING411_API_KEY = os.getenv("FLYING411_API_KEY", "")
FLYING411_TIMEOUT = float(os.getenv("FLYING411_TIMEOUT", "30"))

DEFAULT_USER = "default_user"

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:8501,http://127.0.0.1:8501,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]

DOCUMENT_EXTENSIONS = [".csv", ".xlsx", ".xls", ".pdf", ".pages"]
IMAGE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".webp"]

import os
from dotenv import load_dotenv

load_dotenv()

FOLDER_PATH = os.getenv("FOLDER_PATH", "/tmp/files_manager")
DB_URL = os.getenv("DB_URL", "sqlite:///./files_manager.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Sessions are fixed-duration, never extended on read
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(24 * 3600)))

PAGE_SIZE = int(os.getenv("PAGE_SIZE", "20"))
LIST_OWNER_SCOPED = os.getenv("LIST_OWNER_SCOPED", "false").lower() in {"true", "1", "yes"}

# Thumbnail pipeline
THUMBNAIL_QUEUE = os.getenv("THUMBNAIL_QUEUE", "fileQueue")
THUMBNAIL_WIDTHS = (500, 250, 100)
WORKER_CONCURRENCY = max(1, int(os.getenv("WORKER_CONCURRENCY", "1")))

import os
from dotenv import load_dotenv

load_dotenv()

DATA_LIFESPAN_DAYS = int(os.getenv("DATA_LIFESPAN_DAYS", "7"))
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ENABLE_CLEANER = os.getenv("ENABLE_CLEANER", "true").lower() in {"true", "1", "yes"}
CLEANER_INTERVAL_HOURS = max(1, int(os.getenv("CLEANER_INTERVAL_HOURS", "1")))

SERVICE_HOST = os.getenv("SERVICE_HOST", "0.0.0.0")
SERVICE_PORT = int(os.getenv("SERVICE_PORT", "8000"))

import logging
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clouddrive.db")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000/public")

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# 5 GiB per user
STORAGE_LIMIT_BYTES = int(os.getenv("STORAGE_LIMIT_BYTES", str(5 * 1024 ** 3)))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./baa.db")
MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "minio:9000")
MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "minioadmin")
MINIO_BUCKET = os.getenv("MINIO_BUCKET", "baa")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
WORKER_QUEUE = os.getenv("WORKER_QUEUE", "baa-documents")
DOCUMENT_RENDER_MODE = os.getenv("DOCUMENT_RENDER_MODE", "inline")  # inline|celery
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
VENDOR_LEGAL_NAME = os.getenv("VENDOR_LEGAL_NAME", "Say It Schedule, LLC")
VENDOR_CONTACT_EMAIL = os.getenv("VENDOR_CONTACT_EMAIL", "privacy@sayitschedule.com")

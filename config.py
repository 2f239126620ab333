import os
from datetime import timedelta

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
JWT_TOKEN_LOCATION = ["headers", "cookies"]
JWT_COOKIE_CSRF_PROTECT = False
JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.environ.get("JWT_ACCESS_TOKEN_DAYS", "7")))

SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///mythedit.db")
SQLALCHEMY_TRACK_MODIFICATIONS = False

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_TIMEOUT = float(os.environ.get("OPENAI_TIMEOUT", "120"))
FEEDBACK_MODEL = os.environ.get("FEEDBACK_MODEL", "gpt-4o")
SUMMARY_MODEL = os.environ.get("SUMMARY_MODEL", "gpt-4o-mini")
FEEDBACK_MAX_TOKENS = int(os.environ.get("FEEDBACK_MAX_TOKENS", "4000"))
SUMMARY_MAX_TOKENS = int(os.environ.get("SUMMARY_MAX_TOKENS", "2000"))

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"

REDIS_LOCK_URL = os.environ.get("REDIS_LOCK_URL", "redis://localhost:6379/2")
ANALYSIS_LOCK_TTL = int(os.environ.get("ANALYSIS_LOCK_TTL", "2000"))

MAX_CONTENT_LENGTH = 10 * 1024 * 1024

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

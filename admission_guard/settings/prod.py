# admission_guard/settings/prod.py
from .base import *  # noqa
import os

# === Security ===
DEBUG = False
SECRET_KEY = os.getenv("SECRET_KEY")  # wajib ada di .env.prod
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "guard.example.com").split(",")

# === Database (Postgres in Production) ===
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRES_DB", "admission_guard"),
        "USER": os.getenv("POSTGRES_USER", "admission_guard"),
        "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
        "HOST": os.getenv("POSTGRES_HOST", "127.0.0.1"),
        "PORT": os.getenv("POSTGRES_PORT", "5432"),
        "CONN_MAX_AGE": int(os.getenv("POSTGRES_CONN_MAX_AGE", "60")),
    }
}

# Multi-instance deployment: counters harus shared
RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "redis")

# === Static Files ===
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# === Security Headers ===
SECURE_CONTENT_TYPE_NOSNIFF = True
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "True") == "True"
CSRF_COOKIE_SECURE = os.getenv("CSRF_COOKIE_SECURE", "True") == "True"

# === Logging (override level, handler tetap sama dengan base) ===
LOGGING["loggers"]["decision_engine"]["level"] = os.getenv("DECISION_ENGINE_LOG_LEVEL", "WARNING")
LOGGING["loggers"]["middlewares"]["level"] = os.getenv("DECISION_ENGINE_LOG_LEVEL", "WARNING")

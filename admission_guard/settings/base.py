from pathlib import Path
import environ
import os
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

env = environ.Env()

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = os.getenv("DEBUG", "1") == "1"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "django_crontab",

    # custom apps
    "decision_engine",
    "ip_reputation",
    "ai_behaviour",
]

MIDDLEWARE = [
    "middlewares.security_headers.SecurityHeadersMiddleware",
    "middlewares.admission.AdmissionControlMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "admission_guard.urls"
TEMPLATES = [{
    "BACKEND": "django.template.backends.django.DjangoTemplates",
    "DIRS": [BASE_DIR / "templates"],
    "APP_DIRS": True,
    "OPTIONS": {"context_processors": [
        "django.template.context_processors.debug",
        "django.template.context_processors.request",
        "django.contrib.auth.context_processors.auth",
        "django.contrib.messages.context_processors.messages",
    ]},
}]
WSGI_APPLICATION = "admission_guard.wsgi.application"

# === Database ===
# Security Event Log dan Threat Intel wajib durable (survive restart)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRES_DB", "db_admission_guard"),
        "USER": os.getenv("POSTGRES_USER", "postgres"),
        "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
        "HOST": os.getenv("POSTGRES_HOST", "127.0.0.1"),
        "PORT": os.getenv("POSTGRES_PORT", "5432"),
    }
}

CRONJOBS = [
    ("15 * * * *", "django.core.management.call_command", ["sweep_threat_intel"]),
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# === Admission control ===
# Geo blocking (ISO 3166-1 alpha-2)
GEO_BLOCKED_COUNTRIES = env.list("GEO_BLOCKED_COUNTRIES", default=["KP", "IR", "CU", "SY", "VE"])
COUNTRY_HEADERS = env.list("COUNTRY_HEADERS", default=["CF-IPCountry", "X-Country"])

# Client address resolution
TRUSTED_PROXY_HEADERS = env.list(
    "TRUSTED_PROXY_HEADERS",
    default=["X-Forwarded-For", "X-Real-IP", "CF-Connecting-IP"],
)
# alamat atau CIDR proxy di depan app; kosong = header proxy dan country tidak dipercaya
TRUSTED_PROXIES = env.list("TRUSTED_PROXIES", default=[])

ADMISSION_EXEMPT_PATHS = env.list(
    "ADMISSION_EXEMPT_PATHS",
    default=["/static/", "/healthz", "/readyz", "/favicon.ico", "/robots.txt"],
)
ADMISSION_BACKGROUND_TASKS = env.bool("ADMISSION_BACKGROUND_TASKS", default=True)
BODY_PREVIEW_BYTES = env.int("BODY_PREVIEW_BYTES", default=2048)
# Django admin is mounted at /admin/ (admission_guard/urls.py)
ADMIN_PROBE_EXEMPT_PREFIXES = env.list("ADMIN_PROBE_EXEMPT_PREFIXES", default=["/admin/"])
LOG_ALL_REQUESTS = env.bool("LOG_ALL_REQUESTS", default=True)

# Rate limiting (fixed window)
RATE_LIMIT_BACKEND = os.getenv("RATE_LIMIT_BACKEND", "memory")  # "memory" | "redis"
RATE_LIMIT_REQUESTS = env.int("RATE_LIMIT_REQUESTS", default=100)
RATE_LIMIT_WINDOW = env.int("RATE_LIMIT_WINDOW", default=60)  # detik
RATE_LIMIT_PURGE_INTERVAL = env.int("RATE_LIMIT_PURGE_INTERVAL", default=300)
RATE_LIMIT_CLASSES = {
    "login": {"prefix": "/api/auth/login", "limit": 5, "window": 15 * 60},
    "register": {"prefix": "/api/auth/register", "limit": 3, "window": 60 * 60},
}

# Anonymizing relays (TOR exit nodes)
RELAY_LIST_URL = os.getenv("RELAY_LIST_URL", "https://check.torproject.org/torbulkexitlist")
RELAY_REFRESH_INTERVAL = env.int("RELAY_REFRESH_INTERVAL", default=60 * 60)
RELAY_FETCH_TIMEOUT = env.float("RELAY_FETCH_TIMEOUT", default=5.0)
RELAY_POLICY = os.getenv("RELAY_POLICY", "signal")  # "signal" | "block"

# VPN / proxy reputation lookup
IPQUALITYSCORE_API_KEY = os.getenv("IPQUALITYSCORE_API_KEY", "")
VPN_LOOKUP_TIMEOUT = env.float("VPN_LOOKUP_TIMEOUT", default=3.0)
VPN_CACHE_TTL = env.int("VPN_CACHE_TTL", default=60 * 60)

# Scoring
RISK_NOTABLE_THRESHOLD = env.int("RISK_NOTABLE_THRESHOLD", default=30)
RISK_BLOCK_THRESHOLD = env.int("RISK_BLOCK_THRESHOLD", default=80)

# Threat intelligence
THREAT_INTEL_TTL_HOURS = env.int("THREAT_INTEL_TTL_HOURS", default=24)
THREAT_INTEL_SWEEP_INTERVAL = env.int("THREAT_INTEL_SWEEP_INTERVAL", default=0)  # 0 = cron only

# Behaviour analysis
BEHAVIOUR_SOURCE = os.getenv("BEHAVIOUR_SOURCE", "requests")  # "requests" | "events"
BEHAVIOUR_LOOKBACK_SECONDS = env.int("BEHAVIOUR_LOOKBACK_SECONDS", default=60 * 60)
BEHAVIOUR_AUTOMATION_REQUESTS = env.int("BEHAVIOUR_AUTOMATION_REQUESTS", default=200)
BEHAVIOUR_AUTOMATION_MAX_AGENTS = env.int("BEHAVIOUR_AUTOMATION_MAX_AGENTS", default=2)
BEHAVIOUR_AUTOMATION_POINTS = env.int("BEHAVIOUR_AUTOMATION_POINTS", default=30)
BEHAVIOUR_SCAN_PATHS = env.int("BEHAVIOUR_SCAN_PATHS", default=50)
BEHAVIOUR_SCAN_POINTS = env.int("BEHAVIOUR_SCAN_POINTS", default=25)
BEHAVIOUR_ROTATING_AGENTS = env.int("BEHAVIOUR_ROTATING_AGENTS", default=10)
BEHAVIOUR_ROTATING_POINTS = env.int("BEHAVIOUR_ROTATING_POINTS", default=20)

# Async persistence of security events
SECURITY_EVENT_FLUSH_INTERVAL = env.float("SECURITY_EVENT_FLUSH_INTERVAL", default=0.2)
SECURITY_EVENT_MAX_BUFFER = env.int("SECURITY_EVENT_MAX_BUFFER", default=10_000)

SECURITY_RESPONSE_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; media-src 'self' https:; connect-src 'self' https:; "
        "font-src 'self' https:; object-src 'none'; base-uri 'self'; form-action 'self';"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

# === Redis ===
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s.%(funcName)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "detailed",
        },
        "file_decision": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "decision_engine.log"),
            "formatter": "detailed",
        },
        "file_reputation": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "ip_reputation.log"),
            "formatter": "detailed",
        },
        "file_behaviour": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "ai_behaviour.log"),
            "formatter": "detailed",
        },
        "file_security": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "security_events.log"),
            "formatter": "detailed",
        },
    },
    "loggers": {
        "decision_engine": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "middlewares": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "ip_reputation": {
            "handlers": ["console", "file_reputation"],
            "level": "INFO",
            "propagate": False,
        },
        "ai_behaviour": {
            "handlers": ["console", "file_behaviour"],
            "level": "INFO",
            "propagate": False,
        },
        # security event stream, terpisah dari error internal
        "security_events": {
            "handlers": ["file_security"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

# core/settings.py
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")

DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"

ALLOWED_HOSTS: list[str] = os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party
    "rest_framework",
    # Local apps
    "apps.gateway",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite").lower()

if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "gateway"),
            "USER": os.getenv("POSTGRES_USER", "gateway"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "gateway"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    # SQLite: для тестов и локальной разработки без PostgreSQL
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
}

# ----------------------------------------
# Payment gateways
# ----------------------------------------
# Ключи верхнего уровня: timezone / table / timeout — общие.
# Остальные ключи — имя порта в нижнем регистре -> его опции.
GATEWAY = {
    "timezone": os.getenv("GATEWAY_TIMEZONE", "Asia/Tehran"),
    "table": os.getenv("GATEWAY_TABLE", "gateway_transactions"),
    "timeout": int(os.getenv("GATEWAY_TIMEOUT", "30")),
    "mellat": {
        "terminalId": os.getenv("MELLAT_TERMINAL_ID", ""),
        "username": os.getenv("MELLAT_USERNAME", ""),
        "password": os.getenv("MELLAT_PASSWORD", ""),
        "callback-url": os.getenv("MELLAT_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "sadad": {
        "merchant": os.getenv("SADAD_MERCHANT_ID", ""),
        "terminalId": os.getenv("SADAD_TERMINAL_ID", ""),
        "transactionKey": os.getenv("SADAD_TRANSACTION_KEY", ""),
        "callback-url": os.getenv("SADAD_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "zarinpal": {
        "merchant-id": os.getenv("ZARINPAL_MERCHANT_ID", ""),
        "type": os.getenv("ZARINPAL_TYPE", "normal"),  # normal | zarin-gate
        "server": os.getenv("ZARINPAL_SERVER", "germany"),  # germany | iran | test
        "description": os.getenv("ZARINPAL_DESCRIPTION", "payment"),
        "callback-url": os.getenv("ZARINPAL_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "parsian": {
        "pin": os.getenv("PARSIAN_PIN", ""),
        "callback-url": os.getenv("PARSIAN_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "pasargad": {
        "merchantId": os.getenv("PASARGAD_MERCHANT_ID", ""),
        "terminalId": os.getenv("PASARGAD_TERMINAL_ID", ""),
        "certificate-path": os.getenv("PASARGAD_CERTIFICATE_PATH", ""),
        "callback-url": os.getenv("PASARGAD_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "saman": {
        "merchant": os.getenv("SAMAN_MERCHANT_ID", ""),
        "password": os.getenv("SAMAN_PASSWORD", ""),
        "callback-url": os.getenv("SAMAN_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "paypal": {
        "client-id": os.getenv("PAYPAL_CLIENT_ID", ""),
        "secret": os.getenv("PAYPAL_SECRET", ""),
        "mode": os.getenv("PAYPAL_MODE", "sandbox"),  # sandbox | live
        "currency": os.getenv("PAYPAL_CURRENCY", "USD"),
        "callback-url": os.getenv("PAYPAL_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
        "cancel-url": os.getenv("PAYPAL_CANCEL_URL", "http://localhost:8000/"),
    },
    "asanpardakht": {
        "merchantId": os.getenv("ASANPARDAKHT_MERCHANT_ID", ""),
        "merchantConfigId": os.getenv("ASANPARDAKHT_MERCHANT_CONFIG_ID", ""),
        "username": os.getenv("ASANPARDAKHT_USERNAME", ""),
        "password": os.getenv("ASANPARDAKHT_PASSWORD", ""),
        "key": os.getenv("ASANPARDAKHT_KEY", ""),
        "iv": os.getenv("ASANPARDAKHT_IV", ""),
        "callback-url": os.getenv("ASANPARDAKHT_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
    "payir": {
        "api": os.getenv("PAYIR_API_KEY", "test"),
        "callback-url": os.getenv("PAYIR_CALLBACK_URL", "http://localhost:8000/api/v1/gateway/callback/"),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "apps.gateway": {
            "handlers": ["console"],
            "level": os.getenv("GATEWAY_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

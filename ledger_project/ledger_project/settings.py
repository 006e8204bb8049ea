import os
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

from .logging_config import get_logging_config

BASE_DIR = Path(__file__).resolve().parent.parent
# Pick up local overrides (DATABASE_URL, SECRET_KEY, ...) before reading env
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", "changeme")
DEBUG = os.getenv("DEBUG", "False") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "ledger_core.apps.LedgerCoreConfig",
]

# Default to a local SQLite file; production points DATABASE_URL at Postgres
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

LOGGING = get_logging_config(DEBUG)

# ---------- Ledger ----------
# Fallback tolerance for |debits - credits| when the company has no currency
LEDGER_BALANCE_EPSILON = os.getenv("LEDGER_BALANCE_EPSILON", "0.01")
# Voucher numbers look like V-2025-000001
LEDGER_VOUCHER_PREFIX = os.getenv("LEDGER_VOUCHER_PREFIX", "V")
LEDGER_VOUCHER_NUMBER_WIDTH = int(os.getenv("LEDGER_VOUCHER_NUMBER_WIDTH", "6"))

# backend/gemstrack/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/gemstrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///gemstrack.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Optimistic-concurrency retry policy shared by every coordinator
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    # Human-readable document ids, e.g. INV-000042
    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "INV")
    ORDER_PREFIX = os.environ.get("ORDER_PREFIX", "ORD")
    SEQUENCE_PAD = int(os.environ.get("SEQUENCE_PAD", "6"))

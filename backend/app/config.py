# backend/app/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Split cash/bank payments must add up to the document net within this many cents
    SPLIT_PAYMENT_TOLERANCE_CENTS = int(os.environ.get("SPLIT_PAYMENT_TOLERANCE_CENTS", "1"))

    # Retries for deadlocks / stale rows inside a posting transaction
    POSTING_RETRY_ATTEMPTS = int(os.environ.get("POSTING_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

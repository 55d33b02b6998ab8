# backend/emr_pharmacy/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key; also signs bearer tokens
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///emr_pharmacy.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    AUTH_TOKEN_MAX_AGE_SECONDS = int(os.environ.get("AUTH_TOKEN_MAX_AGE_SECONDS", "43200"))

    # Look-ahead window for the expiring-soon predicate
    EXPIRY_WARNING_DAYS = int(os.environ.get("EXPIRY_WARNING_DAYS", "90"))

    DEFAULT_REORDER_LEVEL = 10
    DEFAULT_LOCATION = "Main Pharmacy"
    TRANSACTION_HISTORY_LIMIT = 50

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

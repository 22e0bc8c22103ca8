# backend/papeleria/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/papeleria.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (postgresql+psycopg://...)
        "sqlite:///papeleria.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Every date-range filter and "today" boundary is a calendar day in this zone
    REPORT_TIMEZONE = os.environ.get("REPORT_TIMEZONE", "America/Bogota")

    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "10"))
    TOP_SELLING_DEFAULT_LIMIT = int(os.environ.get("TOP_SELLING_DEFAULT_LIMIT", "5"))

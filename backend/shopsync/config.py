# backend/shopsync/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopsync.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopsync.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale totals and balances are rounded half-up to this many cents (100 = whole currency unit)
    CURRENCY_ROUNDING_CENTS = int(os.environ.get("CURRENCY_ROUNDING_CENTS", "100"))

    # Shared customer code for anonymous sales; never earns or redeems points
    WALK_IN_CUSTOMER_CODE = os.environ.get("WALK_IN_CUSTOMER_CODE", "WALKIN")

    # Rank-0 tier seeded by `flask system init`
    BASE_TIER_ID = os.environ.get("BASE_TIER_ID", "base-tier")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

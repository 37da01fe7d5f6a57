# backend/sellytics/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/sellytics.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///sellytics.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Products at or below this available quantity are reported as low stock
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    # When False, quantity_sold is a lifetime counter and deleting a sale
    # only returns stock to available_qty.
    REVERSE_QUANTITY_SOLD_ON_DELETE = _env_flag("REVERSE_QUANTITY_SOLD_ON_DELETE")

    # Device IDs are always unique within a sale; this extends the check to
    # every sale line in the store.
    ENFORCE_STORE_WIDE_DEVICE_IDS = _env_flag("ENFORCE_STORE_WIDE_DEVICE_IDS")

# backend/custody/config.py
from __future__ import annotations
import os

from .time_utils import wall_clock_ticks


class Config:
    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///custody.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Logical clock for every "*_at" counter value and expiry comparison.
    # Any zero-argument callable returning a non-decreasing int works.
    LEDGER_CLOCK = staticmethod(wall_clock_ticks)

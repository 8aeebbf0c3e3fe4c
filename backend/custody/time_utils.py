from __future__ import annotations

import time

from flask import current_app


def wall_clock_ticks() -> int:
    """Default ledger clock: whole Unix seconds."""
    return int(time.time())


def current_tick() -> int:
    """
    Current value of the ledger's logical clock.

    All "*_at" fields and every expiry comparison read this, never the
    wall clock directly, so tests can pin time with a ManualClock.
    """
    clock = current_app.config["LEDGER_CLOCK"]
    return int(clock())


class ManualClock:
    """
    Hand-driven clock for tests and simulations.

    Install with app.config["LEDGER_CLOCK"] = ManualClock(start=100).
    The clock only moves forward.
    """

    def __init__(self, start: int = 0):
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, ticks: int = 1) -> int:
        if ticks < 0:
            raise ValueError("ManualClock cannot move backwards")
        self.value += ticks
        return self.value

    def set(self, value: int) -> int:
        if value < self.value:
            raise ValueError(f"ManualClock cannot move backwards ({self.value} -> {value})")
        self.value = value
        return self.value

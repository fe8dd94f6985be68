"""Delay timer that counts down at roughly 60 Hz."""

import math

TIMER_PERIOD_MS = 16.6


class DelayTimer:
    """8-bit countdown timer driven by elapsed wall time.

    Time only accumulates while the timer is non-zero. Whole periods are
    subtracted from the value and the remainder carries over to the next
    update.
    """

    def __init__(self):
        self.value = 0
        self.accumulated_ms = 0.0

    def reset(self) -> None:
        self.value = 0
        self.accumulated_ms = 0.0

    def set(self, value: int) -> None:
        self.value = value & 0xFF

    def update(self, elapsed_ms: float) -> None:
        if self.value == 0:
            return

        self.accumulated_ms += elapsed_ms
        ticks = math.floor(self.accumulated_ms / TIMER_PERIOD_MS)
        if ticks == 0:
            return

        if ticks >= self.value:
            self.value = 0
            self.accumulated_ms = 0.0
        else:
            self.value -= ticks
            self.accumulated_ms %= TIMER_PERIOD_MS

"""
Pacing policies for batch processing.

The schedulers pause between items to respect messaging-channel rate limits.
Tests use NoDelayPacer.
"""

import time
from typing import Protocol


class Pacer(Protocol):
    def pause(self) -> None:
        ...


class FixedDelayPacer:
    def __init__(self, seconds: float):
        self.seconds = seconds

    def pause(self) -> None:
        if self.seconds > 0:
            time.sleep(self.seconds)


class NoDelayPacer:
    def pause(self) -> None:
        pass

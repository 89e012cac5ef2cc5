"""Throttling requested by the broker."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

logger = logging.getLogger(__name__)


class Throttle(Exception):
    """The broker asked the client to wait for ``duration`` before retrying."""

    def __init__(self, duration: timedelta) -> None:
        super().__init__(f"throttled for {duration}")
        self.duration = duration


def maybe_throttle(throttle_time_ms: Optional[int]) -> None:
    """Raise Throttle if the broker reported a positive throttle time.

    A missing or zero time does nothing; a negative time is logged and ignored.
    """
    millis = throttle_time_ms or 0
    if millis < 0:
        logger.warning("Invalid throttle time: throttle_time_ms=%d", millis)
        return
    if millis == 0:
        return
    raise Throttle(timedelta(milliseconds=millis))
#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Retry utilities.
"""

import random
import time
from typing import Any, Callable, Optional

from ..config import RETRY_BASE_DELAY, RETRY_MAX_DELAY


def retry_until(fn: Callable[[], Any], timeout: float, should_retry: Callable[[BaseException], bool],
                base_delay: float = RETRY_BASE_DELAY, max_delay: float = RETRY_MAX_DELAY,
                on_retry: Optional[Callable[[int, BaseException], None]] = None,
                clock: Callable[[], float] = time.monotonic,
                sleep: Callable[[float], None] = time.sleep) -> Any:
    """
    Call ``fn`` until it returns, raises an error ``should_retry`` rejects, or
    ``timeout`` seconds have passed since the first attempt. ``fn`` always runs
    at least once. On timeout the last error is re-raised.

    Waits between attempts grow exponentially with jitter and never sleep past
    the deadline.
    """
    deadline = clock() + max(0.0, timeout)
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if not should_retry(e):
                raise
            remaining = deadline - clock()
            if remaining <= 0:
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(attempt, e)
            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            delay = delay / 2 + random.uniform(0, delay / 2)
            sleep(min(delay, remaining))

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/replboot/utils/retry.py

import time
import functools
from typing import Callable


class RetryError(RuntimeError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


def retry(
    *,
    retries: int,
    delay: float,
    backoff: float = 1.0,
    max_delay: float | None = None,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry decorator for connection setup and other idempotent calls.

    retries: total attempts
    delay: seconds before the second attempt
    backoff: growth factor of the delay after each failure
    max_delay: upper bound of the grown delay
    retry_on: exception types that trigger another attempt
    on_retry: callback(attempt, exception), called for every failure
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            wait = delay
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if on_retry:
                        on_retry(attempt, exc)
                    if attempt == retries:
                        break
                    sleep(wait)
                    wait = wait * backoff
                    if max_delay is not None:
                        wait = min(wait, max_delay)
            raise RetryError(f"{fn.__name__} gave up after {retries} attempts", retries) from last_exc
        return wrapper
    return decorator

"""Performance Logging.

Decorator and context manager for timing provider round-trips and
other slow operations.
"""

import functools
import inspect
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG

logger = logging.getLogger(__name__)


def _emit(
    _logger: logging.Logger,
    name: str,
    duration_ms: float,
    threshold_ms: float,
    extra: dict,
    error: Optional[BaseException] = None,
) -> None:
    extra = {**extra, "duration_ms": round(duration_ms, 2)}
    if error is not None:
        _logger.warning(
            f"{name} failed after {duration_ms:.1f}ms: {type(error).__name__}",
            extra=extra,
        )
    elif duration_ms >= threshold_ms:
        _logger.warning(f"Slow operation: {name} took {duration_ms:.1f}ms", extra=extra)
    else:
        _logger.debug(f"{name} completed in {duration_ms:.1f}ms", extra=extra)


def log_performance(
    threshold_ms: Optional[float] = None,
    logger_name: Optional[str] = None,
) -> Callable:
    """Decorator that logs function execution time.

    Logs all calls at DEBUG level, slow calls (above threshold) and
    failures at WARNING. Works for both sync and async callables.

    Example:
        @log_performance(threshold_ms=500)
        async def sync_models(provider_id):
            ...
    """
    if threshold_ms is None:
        threshold_ms = DEFAULT_LOGGING_CONFIG.slow_threshold_ms

    def decorator(func: Callable) -> Callable:
        _logger = logging.getLogger(logger_name or func.__module__)
        func_name = func.__qualname__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _emit(_logger, func_name, (time.perf_counter() - start) * 1000,
                          threshold_ms, {}, exc)
                    raise
                _emit(_logger, func_name, (time.perf_counter() - start) * 1000,
                      threshold_ms, {})
                return result
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _emit(_logger, func_name, (time.perf_counter() - start) * 1000,
                      threshold_ms, {}, exc)
                raise
            _emit(_logger, func_name, (time.perf_counter() - start) * 1000,
                  threshold_ms, {})
            return result
        return sync_wrapper

    return decorator


class PerformanceTimer:
    """Context manager for timing code blocks.

    Example:
        with PerformanceTimer("openai call", extra={"model_id": "gpt-4o"}) as timer:
            reply = await adapter.call(...)
        print(f"Call took {timer.duration_ms:.1f}ms")
    """

    def __init__(
        self,
        operation_name: str,
        threshold_ms: Optional[float] = None,
        extra: Optional[dict] = None,
        logger_: Optional[logging.Logger] = None,
    ):
        self.operation_name = operation_name
        self.threshold_ms = threshold_ms or DEFAULT_LOGGING_CONFIG.slow_threshold_ms
        self.extra = extra or {}
        self.logger = logger_ or logger
        self.start_time: float = 0
        self.duration_ms: float = 0

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        _emit(self.logger, self.operation_name, self.duration_ms,
              self.threshold_ms, self.extra, exc_val)

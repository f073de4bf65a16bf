"""Run-scoped log context and per-stage timings."""

import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from .logging_config import setup_logger


@dataclass(frozen=True)
class LogContext:
    """
    What every log line of a run carries.

    ``correlation_id`` is the selection ID once the selection exists, so all
    lines of one run can be grepped together.
    """

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    component: str = ""
    stage: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)

    def for_stage(self, stage: str) -> "LogContext":
        return replace(self, stage=stage)

    def with_fields(self, **kwargs: Any) -> "LogContext":
        return replace(self, fields={**self.fields, **kwargs})


def render(message: str, context: Optional[LogContext] = None, **kwargs: Any) -> str:
    """Render ``[correlation] [stage] message | key=value ...``."""
    prefix = ""
    extra: Dict[str, Any] = dict(kwargs)
    if context is not None:
        prefix = f"[{context.correlation_id}] "
        if context.stage:
            prefix += f"[{context.stage}] "
        extra = {**context.fields, **kwargs}

    if not extra:
        return prefix + message
    pairs = " ".join(f"{key}={value}" for key, value in extra.items())
    return f"{prefix}{message} | {pairs}"


class StructuredLogger:
    """stdlib logger that renders a LogContext into each line."""

    def __init__(self, name: str, level: Optional[str] = None):
        self._logger = setup_logger(name, level=level)

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, message: str, context: Optional[LogContext], **kwargs: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, render(message, context, **kwargs))

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, context, **kwargs)


@dataclass
class StageTiming:
    """Wall-clock timing of one pipeline stage."""

    stage: str
    started_at: float
    finished_at: float
    success: bool
    error: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.finished_at - self.started_at


class MetricsCollector:
    """Collects stage timings for the run report."""

    def __init__(self):
        self._timings: List[StageTiming] = []

    def record(self, timing: StageTiming) -> None:
        self._timings.append(timing)

    def timings(self, stage: Optional[str] = None) -> List[StageTiming]:
        if stage:
            return [t for t in self._timings if t.stage == stage]
        return list(self._timings)

    def durations(self) -> Dict[str, float]:
        """Seconds per stage; a repeated stage keeps its latest timing."""
        return {t.stage: t.duration for t in self._timings}

    def clear(self) -> None:
        self._timings.clear()


def timed_stage(
    stage: str,
    collector: Optional[MetricsCollector] = None,
    logger: Optional[Any] = None,
    context: Optional[LogContext] = None,
) -> Callable[[Callable], Callable]:
    """Decorator that times a stage, optionally logging its start and end."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            stage_context = (context or LogContext()).for_stage(stage)
            if logger:
                logger.debug(f"Starting {stage}", stage_context)

            started_at = time.perf_counter()
            error: Optional[str] = None
            succeeded = False
            try:
                result = func(*args, **kwargs)
                succeeded = True
                return result
            except Exception as e:
                error = str(e)
                raise
            finally:
                finished_at = time.perf_counter()
                if logger:
                    logger.debug(
                        f"{'Completed' if succeeded else 'Failed'} {stage}",
                        stage_context,
                        duration_ms=round((finished_at - started_at) * 1000, 2),
                    )
                if collector is not None:
                    collector.record(
                        StageTiming(
                            stage=stage,
                            started_at=started_at,
                            finished_at=finished_at,
                            success=succeeded,
                            error=error,
                        )
                    )

        return wrapper

    return decorator

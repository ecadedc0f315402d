"""
Utility functions for lazyflow

Exception types shared by the engine, logging setup and helpers for measuring
the performance and laziness of pipelines.
"""

import gc
import logging
import sys
import time
import tracemalloc
from typing import Any, Dict, Optional

from pydantic import ValidationError

logger = logging.getLogger(__name__)


# ---------- Exceptions ----------

class FlowError(Exception):
    """Base class for every error raised by lazyflow."""
    pass


class InvalidArgumentError(FlowError, ValueError):
    """Raised synchronously when an operation receives malformed input."""
    pass


class PreconditionError(FlowError, RuntimeError):
    """Raised on the first pull when an upstream has the wrong shape for an operation."""
    pass


def invalid_options(operation: str, error: ValidationError) -> InvalidArgumentError:
    """Translate a pydantic validation failure into an InvalidArgumentError"""
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
        for err in error.errors()
    )
    return InvalidArgumentError(f"Invalid arguments for {operation}(): {details}")


# ---------- Logging ----------

def setup_logging(settings=None) -> logging.Logger:
    """Configure the ``lazyflow`` logger from a FlowSettings instance.

    Only the package logger is touched; the root logger is left alone so that
    applications embedding the library keep their own configuration.
    """
    if settings is None:
        from .models import FlowSettings
        settings = FlowSettings.from_env()

    package_logger = logging.getLogger("lazyflow")
    package_logger.setLevel(settings.log_level)

    if not any(getattr(h, "_lazyflow", False) for h in package_logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler._lazyflow = True
        package_logger.addHandler(handler)

    for handler in package_logger.handlers:
        if getattr(handler, "_lazyflow", False):
            handler.setFormatter(logging.Formatter(settings.log_format))

    _performance_metrics["enabled"] = settings.track_performance
    package_logger.debug(f"Logging configured at level {settings.log_level}")
    return package_logger


# ---------- Performance tracking ----------

_performance_metrics = {
    "enabled": True,
    "operations": [],
    "total_time_ms": 0.0,
    "total_memory_mb": 0.0,
    "operation_count": 0
}


def _record(performance_info: Dict[str, Any]) -> None:
    if not _performance_metrics["enabled"]:
        return
    _performance_metrics["operations"].append(performance_info)
    _performance_metrics["total_time_ms"] += performance_info["execution_time_ms"]
    _performance_metrics["total_memory_mb"] += performance_info["memory_usage_mb"]
    _performance_metrics["operation_count"] += 1


def measure_performance(operation_name: str, func, *args, **kwargs) -> Dict[str, Any]:
    """Run ``func`` and report its execution time and peak traced memory.

    The returned dictionary carries the function's result under ``result``.
    Exceptions raised by ``func`` are recorded and re-raised.
    """
    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()

    try:
        result = func(*args, **kwargs)

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        _, peak = tracemalloc.get_traced_memory()

        performance_info = {
            "operation": operation_name,
            "execution_time_ms": execution_time_ms,
            "memory_usage_mb": peak / 1024 / 1024,
            "success": True,
            "result": result,
            "result_size": len(result) if hasattr(result, "__len__") else None,
            "timestamp": time.time()
        }
        _record(performance_info)
        return performance_info

    except Exception as e:
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        _, peak = tracemalloc.get_traced_memory()

        _record({
            "operation": operation_name,
            "execution_time_ms": execution_time_ms,
            "memory_usage_mb": peak / 1024 / 1024,
            "success": False,
            "error": str(e),
            "timestamp": time.time()
        })
        logger.error(f"Operation {operation_name} failed after {execution_time_ms:.2f}ms: {e}")
        raise

    finally:
        tracemalloc.stop()


def get_performance_summary() -> Dict[str, Any]:
    """Get summary of all performance metrics"""
    count = _performance_metrics["operation_count"]
    if count == 0:
        return {
            "total_operations": 0,
            "total_time_ms": 0.0,
            "total_memory_mb": 0.0,
            "avg_time_ms": 0.0,
            "avg_memory_mb": 0.0
        }

    return {
        "total_operations": count,
        "total_time_ms": _performance_metrics["total_time_ms"],
        "total_memory_mb": _performance_metrics["total_memory_mb"],
        "avg_time_ms": _performance_metrics["total_time_ms"] / count,
        "avg_memory_mb": _performance_metrics["total_memory_mb"] / count
    }


def clear_performance_metrics() -> None:
    """Clear all performance metrics"""
    _performance_metrics["operations"] = []
    _performance_metrics["total_time_ms"] = 0.0
    _performance_metrics["total_memory_mb"] = 0.0
    _performance_metrics["operation_count"] = 0


def validate_lazy_evaluation(pipeline: Any, expected_stage: Optional[type] = None) -> bool:
    """Check that a pipeline still holds a live cursor and no materialized data.

    ``expected_stage`` optionally asserts the type of the outermost cursor.
    """
    if not hasattr(pipeline, "_cursor") or not hasattr(pipeline, "_data"):
        return False
    if pipeline._data is not None or pipeline._cursor is None:
        return False
    if expected_stage is not None and not isinstance(pipeline._cursor, expected_stage):
        return False
    return True

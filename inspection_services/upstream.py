"""
inspection_services.upstream -- Bounded calls to external collaborators.

Responsibility:
    Every call to the media store, notification sender or PDF renderer
    goes through ``bounded_call``.  The call runs on a shared worker pool
    and the caller waits at most ``timeout_seconds``.

Invariants enforced:
    - A timed-out call raises UpstreamTimeoutError; it is never retried.
    - A call that times out but later completes is handed to
      ``on_late_result`` (upload uses this to delete the orphaned asset).
    - Non-kernel exceptions raised by the collaborator are wrapped in
      ``error_cls``; kernel errors propagate unchanged.
    - LogContext fields travel with the call into the worker thread.
"""

from __future__ import annotations

import atexit
import contextvars
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

from inspection_kernel.exceptions import (
    InspectionKernelError,
    UpstreamFailureError,
    UpstreamTimeoutError,
)
from inspection_kernel.logging_config import get_logger

logger = get_logger("services.upstream")

T = TypeVar("T")

_POOL_SIZE = 16
_executor = ThreadPoolExecutor(max_workers=_POOL_SIZE, thread_name_prefix="upstream")
atexit.register(_executor.shutdown, wait=False)


def _late_result_callback(
    operation: str,
    on_late_result: Callable[[Any], None],
    context: contextvars.Context,
) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        logger.warning("upstream_late_result", extra={"upstream_operation": operation})
        try:
            context.run(on_late_result, future.result())
        except Exception:
            # Runs on a pool thread; nobody is left to raise to
            logger.exception(
                "upstream_late_result_handler_failed",
                extra={"upstream_operation": operation},
            )

    return _callback


def bounded_call(
    fn: Callable[[], T],
    timeout_seconds: float,
    operation: str,
    on_late_result: Callable[[T], None] | None = None,
    error_cls: type[UpstreamFailureError] = UpstreamFailureError,
) -> T:
    """
    Run ``fn()`` on the upstream pool, waiting at most ``timeout_seconds``.

    Raises:
        UpstreamTimeoutError: the call did not finish in time.
        error_cls: the call raised a non-kernel exception.
    """
    context = contextvars.copy_context()
    future = _executor.submit(context.run, fn)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError:
        if not future.cancel() and on_late_result is not None:
            future.add_done_callback(
                _late_result_callback(operation, on_late_result, context)
            )
        logger.warning(
            "upstream_call_timed_out",
            extra={
                "upstream_operation": operation,
                "timeout_seconds": timeout_seconds,
            },
        )
        raise UpstreamTimeoutError(operation, timeout_seconds) from None
    except InspectionKernelError:
        raise
    except Exception as exc:
        raise error_cls(operation, f"{type(exc).__name__}: {exc}") from exc

"""Bounded execution of collaborator calls."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, TypeVar

from observability import log_event, span

from .errors import UpstreamError


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CALL_TIMEOUT_S = 30.0


class CollaboratorRunner:
    """Run generator/evaluator calls on a worker pool with a per-call timeout.

    Timed-out calls are abandoned, not cancelled: the worker finishes in the
    background and its result is discarded. Every failure surfaces as
    ``UpstreamError``.
    """

    def __init__(self, *, timeout_s: float = DEFAULT_CALL_TIMEOUT_S, max_workers: int = 8) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self.timeout_s = timeout_s
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="collaborator")

    def run(self, turn: str, session_id: str, fn: Callable[..., T], *args: Any) -> T:
        future = self._executor.submit(fn, *args)
        try:
            with span(f"collaborator.{turn}", session_id):
                return future.result(timeout=self.timeout_s)
        except FutureTimeout as exc:
            future.cancel()
            log_event("collaborator_failed", session_id, level=logging.WARNING, span=turn, error="timeout")
            raise UpstreamError(
                f"AI {turn} call timed out",
                details=f"no response within {self.timeout_s:.1f}s",
            ) from exc
        except UpstreamError as exc:
            log_event("collaborator_failed", session_id, level=logging.WARNING, span=turn, error=exc.message)
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Collaborator %s failed for session %s", turn, session_id)
            log_event("collaborator_failed", session_id, level=logging.WARNING, span=turn, error=type(exc).__name__)
            raise UpstreamError(f"AI {turn} call failed", details=str(exc)) from exc

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["CollaboratorRunner", "DEFAULT_CALL_TIMEOUT_S"]

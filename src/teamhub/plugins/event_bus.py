"""Post-commit event dispatch via pluggy + ThreadPoolExecutor.

Events are fire-and-forget relative to the mutation that raised them:
the mutation has already committed, and a failing hook is logged and
reported, never propagated back into it. Each event is attempted exactly
once; there is no retry and no durable queue.

INVARIANT: Plugin failures are warnings, never errors.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from teamhub.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Async (or sync) hook dispatch.

    Parameters:
        plugin_manager: Loaded PluginManager for hook dispatch.
        sync: Run hooks inline on the caller's thread (tests / ``--sync``).
        max_workers: ThreadPoolExecutor worker count.
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        *,
        sync: bool = False,
        max_workers: int = 2,
    ) -> None:
        self._pm = plugin_manager
        self._sync = sync
        self._executor: ThreadPoolExecutor | None = (
            None if sync else ThreadPoolExecutor(max_workers=max_workers)
        )
        self._futures: list[Future[str | None]] = []
        self._futures_lock = threading.Lock()

    @property
    def is_sync(self) -> bool:
        return self._sync

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> str | None:
        """Run *hook_name* with *payload*.

        In sync mode returns the failure message if a hook raised, else
        None. In async mode always returns None; failures are logged by
        the worker.
        """
        if self._sync or self._executor is None:
            return self._execute_hook(hook_name, payload)

        future = self._executor.submit(self._execute_hook, hook_name, payload)
        with self._futures_lock:
            self._futures.append(future)
        return None

    def wait(self, timeout: float = 30) -> list[str]:
        """Block until in-flight events finish. Returns their failure messages."""
        with self._futures_lock:
            futures, self._futures = self._futures, []
        failures: list[str] = []
        for future in futures:
            error = future.result(timeout=timeout)
            if error is not None:
                failures.append(error)
        return failures

    def shutdown(self) -> None:
        """Wait for pending events, then stop the executor."""
        self.wait()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _execute_hook(self, hook_name: str, payload: dict[str, Any]) -> str | None:
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            logger.debug("No hook named %s; event dropped", hook_name)
            return None
        try:
            hook_fn(**payload)
        except Exception as exc:
            logger.warning("Hook %s failed: %s", hook_name, exc, exc_info=True)
            return f"{hook_name}: {exc}"
        return None

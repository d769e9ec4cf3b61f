# common/orchestrator.py
# -*- coding: utf-8 -*-
"""
Centralized orchestrator for managing and executing sequences of tasks.

Tasks run strictly in the order they were added. The first task that raises
stops the run and its exception is re-raised to the caller unchanged; tasks
that already ran are not undone.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from common.metrics import InstallerMetrics, get_metrics


class OperationCancelled(RuntimeError):
    """Raised when work is attempted on a cancelled run context."""


class RunContext:
    """
    Cooperative cancellation shared by every step of a run.

    Collaborators call ``check()`` before starting work and
    ``remaining()`` to bound subprocess timeouts.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancelled.set()
            return True
        return False

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        if self.cancelled:
            raise OperationCancelled("run context cancelled")


class Orchestrator:
    """A centralized orchestrator to run a series of defined tasks."""

    def __init__(
        self,
        app_settings: Any,
        orchestrator_logger: Optional[logging.Logger] = None,
        metrics: Optional[InstallerMetrics] = None,
    ):
        """
        Initializes the Orchestrator.

        Args:
            app_settings: The application settings object.
            orchestrator_logger: An optional logger instance.
            metrics: Optional metrics sink. Uses the global instance if None.
        """
        self.app_settings = app_settings
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.metrics = metrics or get_metrics()
        self.tasks: List[Dict[str, Any]] = []

    def add_task(
        self,
        name: str,
        func: Callable,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ):
        """
        Adds a task to the execution list.

        Args:
            name: A human-readable name for the task.
            func: The function to execute for this task.
            args: A list of positional arguments to pass to the function.
            kwargs: A dictionary of keyword arguments to pass to the function.
        """
        self.tasks.append({
            "name": name,
            "func": func,
            "args": args or [],
            "kwargs": kwargs or {},
        })
        self.logger.debug(f"Task '{name}' added to the queue.")

    def run(self, ctx: Optional[RunContext] = None) -> None:
        """
        Executes all added tasks in sequence.

        Args:
            ctx: Run context checked before each task starts.

        Raises:
            Exception: Whatever the first failing task raised, unchanged.
        """
        symbols = getattr(self.app_settings, "symbols", None) or {}
        self.logger.info("Orchestration started.")
        for i, task in enumerate(self.tasks):
            task_name = task["name"]
            self.logger.info(
                f"--- Stage {i + 1}/{len(self.tasks)}: Running task '{task_name}' ---"
            )

            started = time.monotonic()
            try:
                if ctx is not None:
                    ctx.check()
                task["func"](*task["args"], **task["kwargs"])
            except Exception as e:
                self.metrics.record_step(
                    task_name, "failure", time.monotonic() - started
                )
                self.logger.critical(
                    f"{symbols.get('critical', '🔥')} Task '{task_name}' failed: {e}",
                    exc_info=True,
                )
                raise

            self.metrics.record_step(
                task_name, "success", time.monotonic() - started
            )
            self.logger.info(
                f"{symbols.get('success', '✅')} Task '{task_name}' completed successfully."
            )

        self.logger.info(
            f"{symbols.get('sparkles', '✨')} Orchestration finished successfully."
        )

"""
Prometheus metrics collection for the Sourcegraph host installer.

The installer is a one-shot process, so metrics are not served over HTTP;
they are written once in text exposition format for node-exporter's
textfile collector.
"""

import logging
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    Info,
    write_to_textfile,
)

logger = logging.getLogger(__name__)


class InstallerMetrics:
    """Centralized metrics collection for the installer."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics collectors.

        Args:
            registry: Optional custom registry. A private one is created if None.
        """
        self.registry = registry or CollectorRegistry()

        self.step_duration = Histogram(
            "sgdeploy_step_duration_seconds",
            "Time spent in each installer step",
            ["step"],
            registry=self.registry,
        )

        self.steps_total = Counter(
            "sgdeploy_steps_total",
            "Installer steps run, by outcome",
            ["step", "status"],
            registry=self.registry,
        )

        self.image_pulls_total = Counter(
            "sgdeploy_image_pulls_total",
            "Image prefetch attempts, by outcome",
            ["status"],
            registry=self.registry,
        )

        self.install_info = Info(
            "sgdeploy_install",
            "Installer run information",
            registry=self.registry,
        )

        logger.debug("Installer metrics initialized")

    def record_step(self, step: str, status: str, duration: float):
        """Record the outcome and duration of an installer step."""
        self.steps_total.labels(step=step, status=status).inc()
        self.step_duration.labels(step=step).observe(duration)

    def record_image_pull(self, status: str):
        """Record one image prefetch attempt."""
        self.image_pulls_total.labels(status=status).inc()

    def set_install_info(self, version: str, distribution: str):
        self.install_info.info({
            "sourcegraph_version": version,
            "distribution": distribution,
        })

    def write_textfile(self, path: str) -> None:
        """Write the registry in text exposition format.

        Args:
            path: Destination file. Its directory is created if missing.
        """
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        write_to_textfile(path, self.registry)
        logger.info(f"Metrics written to {path}")


# Global metrics instance
_metrics_instance: Optional[InstallerMetrics] = None


def get_metrics() -> InstallerMetrics:
    """Get the global metrics instance."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = InstallerMetrics()
    return _metrics_instance

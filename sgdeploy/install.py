# sgdeploy/install.py
# -*- coding: utf-8 -*-
"""
The host bootstrap sequence.

``Installer`` turns a bare Linux host into a single-node Sourcegraph host:
it tunes kernel limits, provisions the data volume, installs containerd,
k3s and helm, applies the Sourcegraph manifests and installs the two host
services. Steps run in a fixed order; the first failure stops the run and
is raised to the caller unchanged. Nothing already done is rolled back, and
every step is safe to run again.
"""

import logging
from typing import Callable, Optional, Sequence

from common.command_utils import get_symbols, log_installer
from common.metrics import InstallerMetrics, get_metrics
from common.orchestrator import Orchestrator, RunContext
from sgdeploy.capabilities import HostCollaborators
from sgdeploy.config_models import AppSettings
from sgdeploy.prefetch import PrefetchStats, prefetch_images
from sgdeploy.preflight import require_root
from sgdeploy.service_installer import SG_INIT, SOURCEGRAPHD, ServiceAsset, install_service
from sgdeploy.system.disk import XFS

module_logger = logging.getLogger(__name__)


class Installer:
    """Runs every bootstrap step against the given host collaborators."""

    def __init__(
        self,
        app_settings: AppSettings,
        collaborators: HostCollaborators,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[InstallerMetrics] = None,
        on_prefetch: Optional[Callable[[PrefetchStats], None]] = None,
        services: Sequence[ServiceAsset] = (SG_INIT, SOURCEGRAPHD),
    ):
        self.app_settings = app_settings
        self.host = collaborators
        self.logger = logger or module_logger
        self.metrics = metrics or get_metrics()
        self.on_prefetch = on_prefetch
        self.services = list(services)
        self.symbols = get_symbols(app_settings)
        self.prefetch_stats: Optional[PrefetchStats] = None

    def _log(self, message: str, level: str = "info") -> None:
        log_installer(message, level, self.logger, self.app_settings)

    def preflight(self, ctx: RunContext) -> None:
        identity = require_root(self.host.identity)
        self._log(f"{self.symbols.get('info', 'ℹ️')} Running as {identity.name}.", "debug")

    def tune_kernel(self, ctx: RunContext) -> None:
        limits = self.app_settings.kernel
        k = self.host.kernel
        k.set_inotify_max_user_watches(ctx, limits.inotify_max_user_watches)
        k.set_vm_max_map_count(ctx, limits.vm_max_map_count)
        k.set_soft_nproc(limits.soft_nproc)
        k.set_hard_nproc(limits.hard_nproc)
        k.set_soft_nofile(limits.soft_nofile)
        k.set_hard_nofile(limits.hard_nofile)

    def provision_volume(self, ctx: RunContext) -> None:
        if not self.host.distro.is_amazon_linux():
            self._log("Not Amazon Linux, leaving block devices alone.", "debug")
            return

        volume = self.app_settings.data_volume
        if self.host.disk.is_mounted(volume.path, volume.device):
            self._log(f"{volume.device} is already mounted at {volume.path}.", "debug")
            return
        self.host.disk.new_disk(ctx, volume.path, volume.device, XFS, mount=True)

    def install_container_runtime(self, ctx: RunContext) -> None:
        self.host.k3s.link_data_volumes()
        self.host.containerd.install(ctx)

    def _record_pull(self, ref: str, succeeded: bool) -> None:
        self.metrics.record_image_pull("success" if succeeded else "failure")

    def prefetch(self, ctx: RunContext) -> None:
        stats = prefetch_images(
            ctx,
            self.host.images.images(),
            self.host.images.pull,
            max_workers=self.app_settings.prefetch.max_workers,
            on_result=self._record_pull,
            current_logger=self.logger,
        )
        self.prefetch_stats = stats
        if self.on_prefetch is not None:
            try:
                self.on_prefetch(stats)
            except Exception as e:
                self._log(f"Prefetch stats hook failed: {e}", "warning")

    def install_cluster(self, ctx: RunContext) -> None:
        self.host.k3s.install(ctx)

    def deploy_manifests(self, ctx: RunContext) -> None:
        self.host.helm.install()
        self.host.deployer.unpack_k8s_configs()

    def stamp_version(self, ctx: RunContext) -> None:
        if not self.host.distro.is_amazon_linux():
            return
        self.host.deployer.write_sourcegraph_version(
            self.app_settings.sourcegraph_version,
            self.app_settings.version_owner,
        )

    def install_service(self, ctx: RunContext, asset: ServiceAsset) -> None:
        install_service(
            ctx,
            asset,
            self.host.assets,
            self.host.services,
            app_settings=self.app_settings,
            current_logger=self.logger,
        )

    def build_orchestrator(self, ctx: RunContext) -> Orchestrator:
        orchestrator = Orchestrator(self.app_settings, self.logger, self.metrics)
        orchestrator.add_task("Preflight", self.preflight, [ctx])
        orchestrator.add_task("Kernel limits", self.tune_kernel, [ctx])
        orchestrator.add_task("Data volume", self.provision_volume, [ctx])
        orchestrator.add_task("Container runtime", self.install_container_runtime, [ctx])
        orchestrator.add_task("Image prefetch", self.prefetch, [ctx])
        orchestrator.add_task("k3s", self.install_cluster, [ctx])
        orchestrator.add_task("Manifests", self.deploy_manifests, [ctx])
        orchestrator.add_task("Version stamp", self.stamp_version, [ctx])
        for asset in self.services:
            orchestrator.add_task(f"{asset.name} service", self.install_service, [ctx, asset])
        return orchestrator

    def run(self, ctx: Optional[RunContext] = None) -> None:
        """
        Run the whole sequence.

        Raises:
            AuthorizationError: Not running as root. Nothing was touched.
            OperationCancelled: ``ctx`` was cancelled or ran out of time.
            Exception: Whatever the first failing step raised, unchanged.
        """
        ctx = ctx or RunContext()
        self._log(
            f"{self.symbols.get('rocket', '🚀')} Installing Sourcegraph {self.app_settings.sourcegraph_version}."
        )
        self.build_orchestrator(ctx).run(ctx)
        self._log(f"{self.symbols.get('sparkles', '✨')} Host is ready.", "success")

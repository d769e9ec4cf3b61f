# sgdeploy/capabilities.py
# -*- coding: utf-8 -*-
"""
The host capabilities the installer depends on, and their default wiring.

Each collaborator is a small interface. The installer only ever talks to
these, so any of them can be swapped for a fake in tests or for another
implementation on a different host.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from common.orchestrator import RunContext
from sgdeploy.assets import AssetProvider, asset_provider_for
from sgdeploy.components.containerd import Containerd
from sgdeploy.components.helm import Helm
from sgdeploy.components.image import ImageStore
from sgdeploy.components.k3s import K3s
from sgdeploy.components.sourcegraph import Sourcegraph
from sgdeploy.config_models import AppSettings
from sgdeploy.preflight import UserIdentity, current_user
from sgdeploy.system import disk, distro, kernel, service


class KernelTuner(Protocol):
    def set_inotify_max_user_watches(self, ctx: RunContext, value: int) -> None: ...

    def set_vm_max_map_count(self, ctx: RunContext, value: int) -> None: ...

    def set_soft_nproc(self, value: int) -> None: ...

    def set_hard_nproc(self, value: int) -> None: ...

    def set_soft_nofile(self, value: int) -> None: ...

    def set_hard_nofile(self, value: int) -> None: ...


class DistributionProbe(Protocol):
    def is_amazon_linux(self) -> bool: ...


class DiskManager(Protocol):
    def is_mounted(self, path: str, device: str) -> bool: ...

    def new_disk(self, ctx: RunContext, path: str, device: str, fs_type: str, mount: bool = False) -> None: ...


class ClusterDistribution(Protocol):
    def link_data_volumes(self) -> None: ...

    def install(self, ctx: RunContext) -> None: ...


class ContainerRuntime(Protocol):
    def install(self, ctx: RunContext) -> None: ...


class ChartManager(Protocol):
    def install(self) -> None: ...


class ImageSource(Protocol):
    def images(self) -> List[str]: ...

    def pull(self, ctx: RunContext, ref: str) -> None: ...


class WorkloadDeployer(Protocol):
    def unpack_k8s_configs(self) -> None: ...

    def write_sourcegraph_version(self, version: str, owner: str) -> None: ...


class ServiceManager(Protocol):
    def enable(self, ctx: RunContext, unit: str) -> None: ...


@dataclass
class HostCollaborators:
    identity: Callable[[], UserIdentity]
    kernel: KernelTuner
    distro: DistributionProbe
    disk: DiskManager
    k3s: ClusterDistribution
    containerd: ContainerRuntime
    helm: ChartManager
    images: ImageSource
    deployer: WorkloadDeployer
    assets: AssetProvider
    services: ServiceManager


class _SettingsBound:
    """Binds the settings and logger the module level helpers expect."""

    def __init__(self, app_settings: AppSettings, logger: Optional[logging.Logger] = None):
        self.app_settings = app_settings
        self.logger = logger

    @property
    def _kwargs(self) -> dict:
        return {"app_settings": self.app_settings, "current_logger": self.logger}


class SystemKernel(_SettingsBound):
    def set_inotify_max_user_watches(self, ctx: RunContext, value: int) -> None:
        kernel.set_inotify_max_user_watches(ctx, value, **self._kwargs)

    def set_vm_max_map_count(self, ctx: RunContext, value: int) -> None:
        kernel.set_vm_max_map_count(ctx, value, **self._kwargs)

    def set_soft_nproc(self, value: int) -> None:
        kernel.set_soft_nproc(value, **self._kwargs)

    def set_hard_nproc(self, value: int) -> None:
        kernel.set_hard_nproc(value, **self._kwargs)

    def set_soft_nofile(self, value: int) -> None:
        kernel.set_soft_nofile(value, **self._kwargs)

    def set_hard_nofile(self, value: int) -> None:
        kernel.set_hard_nofile(value, **self._kwargs)


class SystemDistro:
    def is_amazon_linux(self) -> bool:
        return distro.is_amazon_linux()


class SystemDisk(_SettingsBound):
    def is_mounted(self, path: str, device: str) -> bool:
        return disk.is_mounted(path, device)

    def new_disk(self, ctx: RunContext, path: str, device: str, fs_type: str, mount: bool = False) -> None:
        disk.new_disk(ctx, path, device, fs_type, mount=mount, **self._kwargs)


class SystemServices(_SettingsBound):
    def enable(self, ctx: RunContext, unit: str) -> None:
        service.enable(ctx, unit, **self._kwargs)


def default_collaborators(
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
) -> HostCollaborators:
    """Wire the real host implementations."""
    assets = asset_provider_for(app_settings.assets_dir)
    return HostCollaborators(
        identity=current_user,
        kernel=SystemKernel(app_settings, logger),
        distro=SystemDistro(),
        disk=SystemDisk(app_settings, logger),
        k3s=K3s(app_settings, logger),
        containerd=Containerd(app_settings, logger),
        helm=Helm(app_settings, logger),
        images=ImageStore(app_settings, logger),
        deployer=Sourcegraph(app_settings, assets, logger),
        assets=assets,
        services=SystemServices(app_settings, logger),
    )

# sgdeploy/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for installer configuration.

This module defines the structured settings for the installer,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
SOURCEGRAPH_VERSION_DEFAULT: str = "5.2.4"
VERSION_OWNER_DEFAULT: str = "ec2-user"
LOG_PREFIX_DEFAULT: str = "[SG-DEPLOY]"

DATA_VOLUME_PATH_DEFAULT: str = "/mnt/data"
DATA_VOLUME_DEVICE_DEFAULT: str = "/dev/nvme1n1"

INOTIFY_MAX_USER_WATCHES_DEFAULT: int = 128_000
VM_MAX_MAP_COUNT_DEFAULT: int = 300_000
SOFT_NPROC_DEFAULT: int = 8_192
HARD_NPROC_DEFAULT: int = 16_384
SOFT_NOFILE_DEFAULT: int = 262_144
HARD_NOFILE_DEFAULT: int = 262_144

K3S_INSTALL_SCRIPT_URL_DEFAULT: str = "https://get.k3s.io"
K3S_CHANNEL_DEFAULT: str = "stable"
CONTAINERD_SOCKET_DEFAULT: str = "/run/containerd/containerd.sock"
HELM_INSTALL_SCRIPT_URL_DEFAULT: str = (
    "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
)
CONTAINERD_NAMESPACE_DEFAULT: str = "k8s.io"
MANIFEST_DIR_DEFAULT: str = "/var/lib/sourcegraph/k8s"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


def _default_images() -> List[str]:
    registry = "docker.io/sourcegraph"
    names = [
        "frontend",
        "gitserver",
        "indexed-searcher",
        "search-indexer",
        "searcher",
        "symbols",
        "worker",
        "repo-updater",
        "syntax-highlighter",
        "precise-code-intel-worker",
        "blobstore",
        "postgresql-16",
        "codeintel-db",
        "codeinsights-db",
        "redis-cache",
        "redis-store",
        "prometheus",
        "grafana",
    ]
    return [f"{registry}/{name}:{SOURCEGRAPH_VERSION_DEFAULT}" for name in names]


class DataVolumeSettings(BaseModel):
    """Secondary block device holding application data."""

    path: str = Field(default=DATA_VOLUME_PATH_DEFAULT, description="Mount point of the data volume.")
    device: str = Field(default=DATA_VOLUME_DEVICE_DEFAULT, description="Block device backing the data volume.")


class KernelSettings(BaseModel):
    """Host-wide resource limits applied before the cluster is installed."""

    inotify_max_user_watches: int = Field(default=INOTIFY_MAX_USER_WATCHES_DEFAULT, gt=0)
    vm_max_map_count: int = Field(default=VM_MAX_MAP_COUNT_DEFAULT, gt=0)
    soft_nproc: int = Field(default=SOFT_NPROC_DEFAULT, gt=0)
    hard_nproc: int = Field(default=HARD_NPROC_DEFAULT, gt=0)
    soft_nofile: int = Field(default=SOFT_NOFILE_DEFAULT, gt=0)
    hard_nofile: int = Field(default=HARD_NOFILE_DEFAULT, gt=0)


class PrefetchSettings(BaseModel):
    """Best-effort image cache warming."""

    images: List[str] = Field(default_factory=_default_images,
                              description="Image references pulled before k3s starts.")
    max_workers: Optional[int] = Field(default=None, gt=0,
                                       description="Worker pool size. None lets the executor decide.")
    containerd_namespace: str = Field(default=CONTAINERD_NAMESPACE_DEFAULT,
                                      description="containerd namespace the kubelet reads images from.")


class K3sSettings(BaseModel):
    """k3s installation settings."""

    install_script_url: str = Field(default=K3S_INSTALL_SCRIPT_URL_DEFAULT)
    channel: str = Field(default=K3S_CHANNEL_DEFAULT, description="k3s release channel.")
    containerd_socket: str = Field(default=CONTAINERD_SOCKET_DEFAULT,
                                   description="Host containerd socket k3s is pointed at.")
    rancher_dir: str = Field(default="/var/lib/rancher",
                             description="Directory k3s keeps its state in. Linked onto the data volume.")


class HelmSettings(BaseModel):
    install_script_url: str = Field(default=HELM_INSTALL_SCRIPT_URL_DEFAULT)


class AppSettings(BaseSettings):
    """Main installer settings."""
    model_config = SettingsConfigDict(
        env_prefix="SG_DEPLOY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    sourcegraph_version: str = Field(default=SOURCEGRAPH_VERSION_DEFAULT,
                                     description="Version recorded for downstream tooling.")
    version_owner: str = Field(default=VERSION_OWNER_DEFAULT,
                               description="User owning the recorded version file.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT,
                            description="Prefix for log messages from the installer.")
    manifest_dir: str = Field(default=MANIFEST_DIR_DEFAULT,
                              description="Directory the bundled Kubernetes manifests are unpacked into.")
    assets_dir: Optional[str] = Field(default=None,
                                      description="Directory holding service assets. Defaults to the bundled package data.")

    data_volume: DataVolumeSettings = Field(default_factory=DataVolumeSettings)
    kernel: KernelSettings = Field(default_factory=KernelSettings)
    prefetch: PrefetchSettings = Field(default_factory=PrefetchSettings)
    k3s: K3sSettings = Field(default_factory=K3sSettings)
    helm: HelmSettings = Field(default_factory=HelmSettings)

    # Static symbols, could also be loaded from a separate static config if preferred
    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

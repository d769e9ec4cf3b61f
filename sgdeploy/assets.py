# sgdeploy/assets.py
# -*- coding: utf-8 -*-
"""
Files shipped with the installer: systemd units, their executables and the
Kubernetes manifests.

Assets are addressed by a slash-separated logical path such as
``bin/sg-init.service``. Where they come from is up to the provider.
"""

import os
from importlib import resources
from typing import List, Protocol

ASSET_PACKAGE = "sgdeploy"
ASSET_ROOT = "assets"


class AssetProvider(Protocol):
    def read(self, path: str) -> bytes:
        """Content of the asset at ``path``. Raises FileNotFoundError if absent."""
        ...

    def list(self, directory: str) -> List[str]:
        """Sorted logical paths of the files directly under ``directory``."""
        ...


def _parts(path: str) -> List[str]:
    parts = [p for p in path.split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise FileNotFoundError(f"invalid asset path: {path!r}")
    return parts


class PackageAssetProvider:
    """Assets bundled as package data under ``sgdeploy/assets``."""

    def __init__(self, package: str = ASSET_PACKAGE, root: str = ASSET_ROOT):
        self.package = package
        self.root = root

    def _traverse(self, path: str):
        node = resources.files(self.package) / self.root
        for part in _parts(path):
            node = node / part
        return node

    def read(self, path: str) -> bytes:
        node = self._traverse(path)
        if not node.is_file():
            raise FileNotFoundError(f"asset not found: {path}")
        return node.read_bytes()

    def list(self, directory: str) -> List[str]:
        node = self._traverse(directory)
        if not node.is_dir():
            raise FileNotFoundError(f"asset directory not found: {directory}")
        prefix = "/".join(_parts(directory))
        return sorted(
            f"{prefix}/{child.name}" for child in node.iterdir() if child.is_file()
        )


class DirectoryAssetProvider:
    """Assets laid out in a directory next to the installer."""

    def __init__(self, root: str):
        self.root = root

    def _resolve(self, path: str) -> str:
        return os.path.join(self.root, *_parts(path))

    def read(self, path: str) -> bytes:
        with open(self._resolve(path), "rb") as f:
            return f.read()

    def list(self, directory: str) -> List[str]:
        full = self._resolve(directory)
        prefix = "/".join(_parts(directory))
        return sorted(
            f"{prefix}/{name}"
            for name in os.listdir(full)
            if os.path.isfile(os.path.join(full, name))
        )


def asset_provider_for(assets_dir=None) -> AssetProvider:
    if assets_dir:
        return DirectoryAssetProvider(assets_dir)
    return PackageAssetProvider()

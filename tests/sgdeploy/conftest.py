# tests/sgdeploy/conftest.py
import os
from typing import Dict, List

import pytest

from sgdeploy.service_installer import SG_INIT, SOURCEGRAPHD

SERVICE_ASSETS: Dict[str, bytes] = {
    "bin/sg-init.service": b"[Unit]\nDescription=sg-init\n",
    "bin/sg-init": b"#!/bin/sh\necho init\n",
    "bin/sourcegraphd.service": b"[Unit]\nDescription=sourcegraphd\n",
    "bin/sourcegraphd": b"#!/bin/sh\nexec sleep infinity\n",
}


class MemoryAssets:
    """Asset provider backed by a dict, for tests."""

    def __init__(self, files: Dict[str, bytes]):
        self.files = dict(files)
        self.reads: List[str] = []

    def read(self, path: str) -> bytes:
        self.reads.append(path)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def list(self, directory: str) -> List[str]:
        prefix = directory.rstrip("/") + "/"
        return sorted(
            p for p in self.files if p.startswith(prefix) and "/" not in p[len(prefix):]
        )


@pytest.fixture
def memory_assets():
    return MemoryAssets(SERVICE_ASSETS)


@pytest.fixture
def zero_umask():
    old = os.umask(0)
    yield
    os.umask(old)


@pytest.fixture
def service_dirs(tmp_path):
    unit_dir = tmp_path / "systemd"
    bin_dir = tmp_path / "bin"
    unit_dir.mkdir()
    bin_dir.mkdir()
    return unit_dir, bin_dir


@pytest.fixture
def tmp_services(service_dirs):
    """sg-init and sourcegraphd, redirected into tmp_path."""
    unit_dir, bin_dir = service_dirs
    return [
        asset.model_copy(update={"unit_dir": str(unit_dir), "binary_dir": str(bin_dir)})
        for asset in (SG_INIT, SOURCEGRAPHD)
    ]

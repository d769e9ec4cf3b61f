# sgdeploy/components/sourcegraph.py
# -*- coding: utf-8 -*-
"""
Sourcegraph workload manifests and the version stamp read by downstream tooling.
"""

import logging
import os
import pwd
import subprocess
import time
from typing import Optional

from common.command_utils import run_elevated_command
from sgdeploy.assets import AssetProvider
from sgdeploy.components.base import BaseComponent
from sgdeploy.config_models import AppSettings

MANIFEST_ASSET_DIR = "k8s"
VERSION_FILE_NAME = ".sourcegraph-version"
VERSION_FILE_MODE = 0o644

APPLY_ATTEMPTS = 10
APPLY_RETRY_DELAY = 6.0


class Sourcegraph(BaseComponent):

    def __init__(
        self,
        app_settings: AppSettings,
        assets: AssetProvider,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.assets = assets

    def unpack_k8s_configs(self) -> None:
        """
        Copy the bundled manifests to ``manifest_dir`` and apply them to the
        local cluster.

        The API server may still be starting right after k3s is installed,
        so ``kubectl apply`` is retried a bounded number of times.

        Raises:
            FileNotFoundError: The manifest bundle is missing.
            subprocess.CalledProcessError: ``kubectl apply`` kept failing.
        """
        manifest_dir = self.app_settings.manifest_dir
        os.makedirs(manifest_dir, exist_ok=True)

        manifests = [
            path for path in self.assets.list(MANIFEST_ASSET_DIR)
            if path.endswith((".yaml", ".yml"))
        ]
        if not manifests:
            raise FileNotFoundError(f"no manifests bundled under {MANIFEST_ASSET_DIR}/")

        for asset_path in manifests:
            target = os.path.join(manifest_dir, os.path.basename(asset_path))
            with open(target, "wb") as f:
                f.write(self.assets.read(asset_path))
        self.log(f"Unpacked {len(manifests)} manifests to {manifest_dir}.", "info", "package")

        for attempt in range(1, APPLY_ATTEMPTS + 1):
            try:
                run_elevated_command(
                    ["k3s", "kubectl", "apply", "-f", manifest_dir],
                    self.app_settings,
                    capture_output=True,
                    current_logger=self.logger,
                )
                break
            except subprocess.CalledProcessError:
                if attempt == APPLY_ATTEMPTS:
                    raise
                self.log(
                    f"kubectl apply failed (attempt {attempt}/{APPLY_ATTEMPTS}), retrying in {APPLY_RETRY_DELAY:.0f}s.",
                    "warning",
                    "warning",
                )
                time.sleep(APPLY_RETRY_DELAY)

        self.log("Sourcegraph manifests applied.", "success", "success")

    def write_sourcegraph_version(self, version: str, owner: str) -> None:
        """
        Record the installed version in ``~owner/.sourcegraph-version``.

        The file is opened without following symlinks, since ``owner``
        controls the directory it lives in.

        Raises:
            KeyError: ``owner`` does not exist.
            OSError: The file could not be written or chowned, or it is a symlink.
        """
        entry = pwd.getpwnam(owner)
        path = os.path.join(entry.pw_dir, VERSION_FILE_NAME)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC | os.O_NOFOLLOW, VERSION_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{version}\n")
            f.flush()
            os.fchown(f.fileno(), entry.pw_uid, entry.pw_gid)
        self.log(f"Recorded Sourcegraph {version} in {path}.", "info", "success")

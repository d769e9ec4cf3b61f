# sgdeploy/components/k3s.py
# -*- coding: utf-8 -*-
"""
k3s, the single-node Kubernetes distribution Sourcegraph runs on.
"""

import os

from common.command_utils import run_elevated_command
from common.network_utils import fetch_text
from common.orchestrator import RunContext
from sgdeploy.components.base import BaseComponent


class K3s(BaseComponent):
    """Installs k3s on top of the host containerd."""

    @property
    def data_dir(self) -> str:
        return os.path.join(self.app_settings.data_volume.path, "rancher")

    def link_data_volumes(self) -> None:
        """
        Point the k3s state directory at the data volume by symlinking
        ``k3s.rancher_dir`` to ``<data volume>/rancher``.

        A link that already points there is left alone. An empty directory in
        the way is replaced.

        Raises:
            FileExistsError: A non-empty directory or file is in the way.
        """
        rancher_dir = self.app_settings.k3s.rancher_dir
        target = self.data_dir
        os.makedirs(target, exist_ok=True)

        if os.path.islink(rancher_dir):
            if os.path.realpath(rancher_dir) == os.path.realpath(target):
                self.log(f"{rancher_dir} already links to {target}.", "debug", "info")
                return
            os.unlink(rancher_dir)
        elif os.path.isdir(rancher_dir):
            if os.listdir(rancher_dir):
                raise FileExistsError(
                    f"{rancher_dir} already holds data; move it to {target} before installing"
                )
            os.rmdir(rancher_dir)
        elif os.path.exists(rancher_dir):
            raise FileExistsError(f"{rancher_dir} exists and is not a directory")

        parent = os.path.dirname(rancher_dir)
        if parent:
            os.makedirs(parent, exist_ok=True)
        os.symlink(target, rancher_dir)
        self.log(f"Linked {rancher_dir} -> {target}.", "info", "success")

    def install_env(self) -> dict:
        k3s_settings = self.app_settings.k3s
        env = dict(os.environ)
        env.update({
            "INSTALL_K3S_CHANNEL": k3s_settings.channel,
            "INSTALL_K3S_EXEC": (
                "server"
                f" --container-runtime-endpoint unix://{k3s_settings.containerd_socket}"
                " --write-kubeconfig-mode 644"
            ),
        })
        return env

    def install(self, ctx: RunContext) -> None:
        """
        Download the k3s install script and run it.

        Raises:
            requests.exceptions.RequestException: The script could not be downloaded.
            subprocess.CalledProcessError: The install script failed.
        """
        script = fetch_text(
            self.app_settings.k3s.install_script_url,
            ctx=ctx,
            current_logger=self.logger,
        )
        self.log("Installing k3s...", "info", "rocket")
        run_elevated_command(
            ["sh", "-s", "-"],
            self.app_settings,
            cmd_input=script,
            current_logger=self.logger,
            env=self.install_env(),
            ctx=ctx,
        )
        self.log("k3s installed.", "success", "success")

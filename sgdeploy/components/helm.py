# sgdeploy/components/helm.py
# -*- coding: utf-8 -*-
"""
Helm, the chart manager used by later Sourcegraph upgrades.
"""

import os

from common.command_utils import command_exists, run_elevated_command
from common.network_utils import fetch_text
from sgdeploy.components.base import BaseComponent

HELM_INSTALL_DIR = "/usr/local/bin"


class Helm(BaseComponent):

    def install(self) -> None:
        """
        Install helm with the upstream script unless it is already on PATH.

        Raises:
            requests.exceptions.RequestException: The script could not be downloaded.
            subprocess.CalledProcessError: The install script failed.
        """
        if command_exists("helm"):
            self.log("helm is already installed.", "info", "info")
            return

        script = fetch_text(
            self.app_settings.helm.install_script_url,
            current_logger=self.logger,
        )
        env = dict(os.environ)
        env.update({"HELM_INSTALL_DIR": HELM_INSTALL_DIR, "USE_SUDO": "false"})
        self.log("Installing helm...", "info", "package")
        run_elevated_command(
            ["bash", "-s", "-"],
            self.app_settings,
            cmd_input=script,
            current_logger=self.logger,
            env=env,
        )

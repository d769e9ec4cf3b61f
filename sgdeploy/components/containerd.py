# sgdeploy/components/containerd.py
# -*- coding: utf-8 -*-
"""
Installs the containerd container runtime from the host's package manager.
"""

import os
from typing import List, Optional

from common.command_utils import command_exists, run_elevated_command
from common.orchestrator import RunContext
from sgdeploy.components.base import BaseComponent
from sgdeploy.system import service

CONTAINERD_CONFIG_PATH = "/etc/containerd/config.toml"
CONTAINERD_UNIT = "containerd.service"

# Checked in order; the first one on PATH is used.
_PACKAGE_MANAGERS: List[List[str]] = [
    ["dnf", "install", "-y", "containerd"],
    ["yum", "install", "-y", "containerd"],
    ["apt-get", "install", "-y", "containerd"],
]


def _install_command() -> Optional[List[str]]:
    for command in _PACKAGE_MANAGERS:
        if command_exists(command[0]):
            return command
    return None


class Containerd(BaseComponent):
    """containerd, used by k3s through its CRI socket."""

    def install(self, ctx: RunContext) -> None:
        """
        Install containerd unless it is already present, write a default
        config with the CRI plugin enabled if none exists, then enable the
        service.

        Raises:
            EnvironmentError: No supported package manager was found.
            subprocess.CalledProcessError: A package or systemctl command failed.
        """
        ctx.check()
        if command_exists("containerd"):
            self.log("containerd is already installed.", "info", "info")
        else:
            command = _install_command()
            if command is None:
                raise EnvironmentError(
                    "no supported package manager (dnf, yum, apt-get) found to install containerd"
                )
            if command[0] == "apt-get":
                run_elevated_command(
                    ["apt-get", "update"],
                    self.app_settings,
                    current_logger=self.logger,
                    ctx=ctx,
                )
            self.log("Installing containerd...", "info", "package")
            run_elevated_command(
                command,
                self.app_settings,
                current_logger=self.logger,
                ctx=ctx,
            )

        self._write_default_config(ctx)
        service.enable(
            ctx,
            CONTAINERD_UNIT,
            app_settings=self.app_settings,
            current_logger=self.logger,
        )

    def _write_default_config(self, ctx: RunContext) -> None:
        if os.path.exists(CONTAINERD_CONFIG_PATH):
            return
        result = run_elevated_command(
            ["containerd", "config", "default"],
            self.app_settings,
            capture_output=True,
            current_logger=self.logger,
            ctx=ctx,
        )
        os.makedirs(os.path.dirname(CONTAINERD_CONFIG_PATH), exist_ok=True)
        with open(CONTAINERD_CONFIG_PATH, "w", encoding="utf-8") as f:
            f.write(result.stdout)
        self.log(f"Wrote default containerd config to {CONTAINERD_CONFIG_PATH}.", "info", "success")

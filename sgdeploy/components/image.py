# sgdeploy/components/image.py
# -*- coding: utf-8 -*-
"""
Container images pulled ahead of the cluster starting.
"""

from typing import List

from common.command_utils import run_elevated_command
from common.orchestrator import RunContext
from sgdeploy.components.base import BaseComponent


class ImageStore(BaseComponent):
    """The host containerd image store, in the namespace the kubelet uses."""

    def images(self) -> List[str]:
        return list(self.app_settings.prefetch.images)

    def pull(self, ctx: RunContext, ref: str) -> None:
        """
        Pull one image into containerd.

        Raises:
            subprocess.CalledProcessError: ``ctr`` failed.
        """
        run_elevated_command(
            [
                "ctr",
                "--namespace",
                self.app_settings.prefetch.containerd_namespace,
                "images",
                "pull",
                ref,
            ],
            self.app_settings,
            capture_output=True,
            current_logger=self.logger,
            ctx=ctx,
        )

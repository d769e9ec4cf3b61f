# sgdeploy/system/service.py
# -*- coding: utf-8 -*-
"""
systemd unit registration.
"""

import logging
from typing import Optional

from common.command_utils import get_symbols, log_installer, run_elevated_command
from common.orchestrator import RunContext
from sgdeploy.config_models import AppSettings

module_logger = logging.getLogger(__name__)


def enable(
    ctx: RunContext,
    unit: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Reload unit files, then enable and start ``unit``.

    Raises:
        subprocess.CalledProcessError: systemctl failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    run_elevated_command(
        ["systemctl", "daemon-reload"],
        app_settings,
        current_logger=logger_to_use,
        ctx=ctx,
    )
    run_elevated_command(
        ["systemctl", "enable", "--now", unit],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
        ctx=ctx,
    )
    log_installer(
        f"{symbols.get('success', '✅')} {unit} enabled and started.",
        "success",
        logger_to_use,
        app_settings,
    )

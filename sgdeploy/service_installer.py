# sgdeploy/service_installer.py
# -*- coding: utf-8 -*-
"""
Extracts a bundled systemd unit and its executable onto the host and
registers the unit with systemd.

Files are overwritten on every run without comparing contents. A failure
part way leaves whatever was already written in place.
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict

from common.command_utils import get_symbols, log_installer
from common.orchestrator import RunContext
from sgdeploy.assets import AssetProvider
from sgdeploy.config_models import AppSettings

module_logger = logging.getLogger(__name__)

SYSTEMD_UNIT_DIR = "/etc/systemd/system"
BINARY_DIR = "/usr/local/bin"


class ServiceAsset(BaseModel):
    """A unit file plus the executable it runs, as shipped in ``bin/``."""
    model_config = ConfigDict(frozen=True)

    name: str
    unit_mode: int
    binary_mode: int = 0o755
    unit_dir: str = SYSTEMD_UNIT_DIR
    binary_dir: str = BINARY_DIR

    @property
    def unit_name(self) -> str:
        return f"{self.name}.service"

    @property
    def unit_asset(self) -> str:
        return f"bin/{self.unit_name}"

    @property
    def binary_asset(self) -> str:
        return f"bin/{self.name}"

    @property
    def unit_path(self) -> str:
        return os.path.join(self.unit_dir, self.unit_name)

    @property
    def binary_path(self) -> str:
        return os.path.join(self.binary_dir, self.name)


# sg-init.service is created 0754 and sourcegraphd.service 0755. The two
# differ upstream as well; see DESIGN.md before unifying them.
SG_INIT = ServiceAsset(name="sg-init", unit_mode=0o754)
SOURCEGRAPHD = ServiceAsset(name="sourcegraphd", unit_mode=0o755)


def write_file(path: str, data: bytes, mode: int) -> None:
    """
    Create or truncate ``path`` and write ``data``. ``mode`` only applies
    when the file is created.
    """
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def install_service(
    ctx: RunContext,
    service: ServiceAsset,
    assets: AssetProvider,
    service_manager,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Write the unit file and executable for ``service``, then enable it.

    The unit file is written before the executable is read, so a missing
    executable asset leaves the unit file behind but never enables the unit.

    Raises:
        FileNotFoundError: An asset is missing.
        OSError: A target file could not be opened or written.
        Exception: Whatever ``service_manager.enable`` raised.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    unit = assets.read(service.unit_asset)
    write_file(service.unit_path, unit, service.unit_mode)
    log_installer(
        f"{symbols.get('gear', '⚙️')} Wrote {service.unit_path}.",
        "debug",
        logger_to_use,
        app_settings,
    )

    binary = assets.read(service.binary_asset)
    write_file(service.binary_path, binary, service.binary_mode)
    log_installer(
        f"{symbols.get('gear', '⚙️')} Wrote {service.binary_path}.",
        "debug",
        logger_to_use,
        app_settings,
    )

    service_manager.enable(ctx, service.unit_name)
    log_installer(
        f"{symbols.get('success', '✅')} Service {service.unit_name} installed.",
        "success",
        logger_to_use,
        app_settings,
    )

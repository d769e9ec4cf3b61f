"""
Base class for installable components.

Components wrap one external piece of the stack (container runtime, k3s,
helm, ...) behind a narrow interface the installer calls.
"""

import logging
from typing import Optional

from common.command_utils import get_symbols, log_installer
from sgdeploy.config_models import AppSettings


class BaseComponent:
    """
    Holds the settings and logger every component needs.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the component.

        Args:
            app_settings: The application settings.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.symbols = get_symbols(app_settings)

    def log(self, message: str, level: str = "info", symbol: Optional[str] = None) -> None:
        if symbol:
            message = f"{self.symbols.get(symbol, '')} {message}"
        log_installer(message, level, self.logger, self.app_settings)

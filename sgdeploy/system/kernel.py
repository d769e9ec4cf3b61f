# sgdeploy/system/kernel.py
# -*- coding: utf-8 -*-
"""
Kernel tunables and per-user resource limits needed by Sourcegraph.

Every setter reads the current value first and only writes when it differs,
so re-running the installer leaves an already-tuned host untouched.
"""

import logging
import os
from typing import List, Optional

from common.command_utils import get_symbols, log_installer, run_elevated_command
from common.orchestrator import RunContext
from sgdeploy.config_models import AppSettings

module_logger = logging.getLogger(__name__)

PROC_SYS_ROOT = "/proc/sys"
SYSCTL_CONF_PATH = "/etc/sysctl.d/99-sourcegraph.conf"
LIMITS_CONF_PATH = "/etc/security/limits.d/99-sourcegraph.conf"
LIMITS_DOMAIN = "*"


def _proc_path(key: str) -> str:
    return os.path.join(PROC_SYS_ROOT, *key.split("."))


def read_sysctl(key: str) -> Optional[int]:
    """Current value of an integer sysctl, or None when it cannot be read."""
    try:
        with open(_proc_path(key), "r", encoding="utf-8") as f:
            return int(f.read().split()[0])
    except (OSError, ValueError, IndexError):
        return None


def _upsert_line(path: str, match: List[str], line: str) -> bool:
    """
    Replace the first line of ``path`` whose leading fields equal ``match``,
    or append ``line`` when none does. The file is only rewritten on change.

    Returns:
        True if the file was written.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        lines = []

    new_lines = []
    found = False
    for existing in lines:
        fields = existing.replace("=", " = ").split()
        if not found and fields[: len(match)] == match:
            new_lines.append(line)
            found = True
        else:
            new_lines.append(existing)
    if not found:
        new_lines.append(line)

    if new_lines == lines:
        return False

    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(new_lines) + "\n")
    os.chmod(path, 0o644)
    return True


def set_sysctl(
    ctx: RunContext,
    key: str,
    value: int,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Apply ``key=value`` to the running kernel and persist it in
    ``SYSCTL_CONF_PATH``.

    Raises:
        subprocess.CalledProcessError: ``sysctl -w`` failed.
        OSError: The drop-in file could not be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    ctx.check()

    if read_sysctl(key) != value:
        run_elevated_command(
            ["sysctl", "-w", f"{key}={value}"],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
            ctx=ctx,
        )
    else:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {key} is already {value}.",
            "debug",
            logger_to_use,
            app_settings,
        )

    if _upsert_line(SYSCTL_CONF_PATH, [key], f"{key} = {value}"):
        log_installer(
            f"{symbols.get('success', '✅')} Persisted {key} = {value} in {SYSCTL_CONF_PATH}.",
            "info",
            logger_to_use,
            app_settings,
        )


def set_inotify_max_user_watches(ctx: RunContext, value: int, **kwargs) -> None:
    set_sysctl(ctx, "fs.inotify.max_user_watches", value, **kwargs)


def set_vm_max_map_count(ctx: RunContext, value: int, **kwargs) -> None:
    set_sysctl(ctx, "vm.max_map_count", value, **kwargs)


def set_limit(
    kind: str,
    item: str,
    value: int,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Persist a pam_limits entry such as ``* soft nofile 262144``.

    Args:
        kind: "soft" or "hard".
        item: limits.conf item, e.g. "nproc" or "nofile".
        value: The limit.

    Raises:
        OSError: The limits file could not be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    line = f"{LIMITS_DOMAIN} {kind} {item} {value}"
    if _upsert_line(LIMITS_CONF_PATH, [LIMITS_DOMAIN, kind, item], line):
        log_installer(
            f"{symbols.get('success', '✅')} Set {kind} {item} limit to {value}.",
            "info",
            logger_to_use,
            app_settings,
        )


def set_soft_nproc(value: int, **kwargs) -> None:
    set_limit("soft", "nproc", value, **kwargs)


def set_hard_nproc(value: int, **kwargs) -> None:
    set_limit("hard", "nproc", value, **kwargs)


def set_soft_nofile(value: int, **kwargs) -> None:
    set_limit("soft", "nofile", value, **kwargs)


def set_hard_nofile(value: int, **kwargs) -> None:
    set_limit("hard", "nofile", value, **kwargs)

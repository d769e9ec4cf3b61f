# sgdeploy/system/disk.py
# -*- coding: utf-8 -*-
"""
Formatting and mounting of the secondary data volume.
"""

import logging
import os
import subprocess
from typing import Iterator, Optional, Tuple

from common.command_utils import get_symbols, log_installer, run_elevated_command
from common.orchestrator import RunContext
from sgdeploy.config_models import AppSettings

module_logger = logging.getLogger(__name__)

XFS = "xfs"
EXT4 = "ext4"

MOUNTS_PATH = "/proc/self/mounts"
FSTAB_PATH = "/etc/fstab"


def _unescape_mount_field(field: str) -> str:
    # /proc/mounts escapes space, tab, newline and backslash as octal
    for escaped, char in (("\\040", " "), ("\\011", "\t"), ("\\012", "\n"), ("\\134", "\\")):
        field = field.replace(escaped, char)
    return field


def _iter_mounts() -> Iterator[Tuple[str, str]]:
    with open(MOUNTS_PATH, "r", encoding="utf-8") as f:
        for line in f:
            fields = line.split()
            if len(fields) < 2:
                continue
            yield _unescape_mount_field(fields[0]), _unescape_mount_field(fields[1])


def is_mounted(path: str, device: str) -> bool:
    """
    Whether ``device`` is currently mounted at ``path``.

    Device symlinks (e.g. /dev/disk/by-id/...) are resolved before comparing.

    Raises:
        OSError: The mount table could not be read.
    """
    want_path = os.path.normpath(path)
    want_device = os.path.realpath(device)
    for source, mount_point in _iter_mounts():
        if os.path.normpath(mount_point) != want_path:
            continue
        if os.path.realpath(source) == want_device:
            return True
    return False


def existing_filesystem(
    device: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
    ctx: Optional[RunContext] = None,
) -> Optional[str]:
    """Filesystem type already on ``device`` according to blkid, or None."""
    result = run_elevated_command(
        ["blkid", "-o", "value", "-s", "TYPE", device],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=current_logger,
        ctx=ctx,
    )
    fs_type = (result.stdout or "").strip()
    return fs_type if result.returncode == 0 and fs_type else None


def _device_uuid(
    device: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger],
    ctx: Optional[RunContext],
) -> str:
    result = run_elevated_command(
        ["blkid", "-o", "value", "-s", "UUID", device],
        app_settings,
        capture_output=True,
        current_logger=current_logger,
        ctx=ctx,
    )
    uuid = result.stdout.strip()
    if not uuid:
        raise subprocess.CalledProcessError(
            2, result.args, output=result.stdout, stderr="device has no UUID"
        )
    return uuid


def _ensure_fstab_entry(path: str, fs_type: str, uuid: str) -> bool:
    """Append an fstab line for ``path`` unless one already exists."""
    try:
        with open(FSTAB_PATH, "r", encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        content = ""

    for line in content.splitlines():
        fields = line.split()
        if len(fields) >= 2 and not fields[0].startswith("#") and os.path.normpath(fields[1]) == os.path.normpath(path):
            return False

    with open(FSTAB_PATH, "a", encoding="utf-8") as f:
        if content and not content.endswith("\n"):
            f.write("\n")
        f.write(f"UUID={uuid} {path} {fs_type} defaults,nofail 0 2\n")
    return True


def new_disk(
    ctx: RunContext,
    path: str,
    device: str,
    fs_type: str,
    mount: bool = False,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Format ``device`` with ``fs_type`` and, when ``mount`` is set, mount it at
    ``path`` and record it in /etc/fstab.

    A device that already carries ``fs_type`` is not reformatted.

    Raises:
        subprocess.CalledProcessError: mkfs, blkid or mount failed.
        OSError: The mount point or fstab could not be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    ctx.check()

    current_fs = existing_filesystem(device, app_settings, logger_to_use, ctx)
    if current_fs == fs_type:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {device} already holds a {fs_type} filesystem. Not reformatting.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        log_installer(
            f"{symbols.get('gear', '⚙️')} Formatting {device} as {fs_type}...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_elevated_command(
            [f"mkfs.{fs_type}", device],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
            ctx=ctx,
        )

    if not mount:
        return

    os.makedirs(path, exist_ok=True)
    run_elevated_command(
        ["mount", "-t", fs_type, device, path],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
        ctx=ctx,
    )
    uuid = _device_uuid(device, app_settings, logger_to_use, ctx)
    if _ensure_fstab_entry(path, fs_type, uuid):
        log_installer(
            f"{symbols.get('success', '✅')} Added {path} to {FSTAB_PATH}.",
            "info",
            logger_to_use,
            app_settings,
        )
    log_installer(
        f"{symbols.get('success', '✅')} Mounted {device} at {path}.",
        "success",
        logger_to_use,
        app_settings,
    )

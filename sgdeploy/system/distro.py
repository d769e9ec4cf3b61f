# sgdeploy/system/distro.py
# -*- coding: utf-8 -*-
"""
Host distribution detection from os-release(5).
"""

import shlex
from typing import Dict

OS_RELEASE_PATH = "/etc/os-release"
AMAZON_LINUX_ID = "amzn"


def read_os_release(path: str = OS_RELEASE_PATH) -> Dict[str, str]:
    """Parse an os-release file into a dict. A missing file yields {}."""
    values: Dict[str, str] = {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, _, raw = line.partition("=")
                try:
                    parsed = shlex.split(raw)
                except ValueError:
                    continue
                values[key] = parsed[0] if parsed else ""
    except FileNotFoundError:
        return {}
    return values


def distribution_id() -> str:
    return read_os_release(OS_RELEASE_PATH).get("ID", "linux")


def is_amazon_linux() -> bool:
    return distribution_id() == AMAZON_LINUX_ID

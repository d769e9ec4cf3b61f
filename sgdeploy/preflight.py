# sgdeploy/preflight.py
# -*- coding: utf-8 -*-
"""
Privilege checks performed before the installer touches the host.
"""

import os
import pwd
from typing import Callable, NamedTuple


class AuthorizationError(PermissionError):
    """The installer was started without root privileges."""


class UserIdentity(NamedTuple):
    name: str
    uid: int


ROOT_UID = 0


def current_user() -> UserIdentity:
    """
    Look up the effective user of this process.

    Raises:
        KeyError: The effective uid has no passwd entry.
    """
    entry = pwd.getpwuid(os.geteuid())
    return UserIdentity(name=entry.pw_name, uid=entry.pw_uid)


def require_root(identity_lookup: Callable[[], UserIdentity] = current_user) -> UserIdentity:
    """
    Fail unless the effective user is the superuser.

    Errors raised by ``identity_lookup`` propagate unchanged.

    Raises:
        AuthorizationError: The effective uid is not 0.
    """
    identity = identity_lookup()
    if identity.uid != ROOT_UID:
        raise AuthorizationError(
            "please rerun installer with root privileges"
        )
    return identity

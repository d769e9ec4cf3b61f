"""
Sourcegraph host installer.

Brings a bare Linux host to the point where Sourcegraph runs on a
single-node k3s cluster, then hands supervision to two systemd services.
"""

__version__ = "0.3.0"

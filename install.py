#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Entry point for running the Sourcegraph host installer from a checkout.

    sudo ./install.py install
"""

from sgdeploy.cli import cli

if __name__ == "__main__":
    cli()

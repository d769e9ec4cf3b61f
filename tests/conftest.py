# tests/conftest.py
import logging
import os
from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry

from common.metrics import InstallerMetrics
from common.orchestrator import RunContext
from sgdeploy.config_models import AppSettings


@pytest.fixture
def app_settings(monkeypatch):
    """Default settings, isolated from any SG_DEPLOY_* variables in the environment."""
    for key in list(os.environ):
        if key.startswith("SG_DEPLOY_"):
            monkeypatch.delenv(key, raising=False)
    return AppSettings()


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def metrics():
    """Metrics on a throwaway registry so tests never share counters."""
    return InstallerMetrics(registry=CollectorRegistry())


@pytest.fixture
def run_ctx():
    return RunContext()

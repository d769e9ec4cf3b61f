# tests/sgdeploy/test_k3s.py
# -*- coding: utf-8 -*-
import os

import pytest

from common.orchestrator import RunContext
from sgdeploy.components.k3s import K3s
from sgdeploy.config_models import AppSettings


@pytest.fixture
def k3s(tmp_path, app_settings, mock_logger):
    settings = app_settings.model_copy(
        update={
            "data_volume": app_settings.data_volume.model_copy(update={"path": str(tmp_path / "data")}),
            "k3s": app_settings.k3s.model_copy(update={"rancher_dir": str(tmp_path / "var" / "lib" / "rancher")}),
        }
    )
    return K3s(settings, mock_logger)


def test_link_creates_symlink(k3s, tmp_path):
    k3s.link_data_volumes()

    rancher = tmp_path / "var" / "lib" / "rancher"
    assert rancher.is_symlink()
    assert os.readlink(rancher) == str(tmp_path / "data" / "rancher")
    assert (tmp_path / "data" / "rancher").is_dir()


def test_link_is_idempotent(k3s, tmp_path):
    k3s.link_data_volumes()
    k3s.link_data_volumes()
    assert (tmp_path / "var" / "lib" / "rancher").is_symlink()


def test_link_replaces_empty_dir(k3s, tmp_path):
    rancher = tmp_path / "var" / "lib" / "rancher"
    rancher.mkdir(parents=True)

    k3s.link_data_volumes()

    assert rancher.is_symlink()


def test_link_replaces_stale_link(k3s, tmp_path):
    rancher = tmp_path / "var" / "lib" / "rancher"
    rancher.parent.mkdir(parents=True)
    rancher.symlink_to(tmp_path / "elsewhere")

    k3s.link_data_volumes()

    assert os.readlink(rancher) == str(tmp_path / "data" / "rancher")


def test_link_refuses_to_hide_existing_data(k3s, tmp_path):
    rancher = tmp_path / "var" / "lib" / "rancher"
    (rancher / "k3s").mkdir(parents=True)

    with pytest.raises(FileExistsError):
        k3s.link_data_volumes()

    assert not rancher.is_symlink()


def test_install_env():
    env = K3s(AppSettings()).install_env()
    assert env["INSTALL_K3S_CHANNEL"] == "stable"
    assert env["INSTALL_K3S_EXEC"] == (
        "server --container-runtime-endpoint unix:///run/containerd/containerd.sock"
        " --write-kubeconfig-mode 644"
    )


def test_install_runs_downloaded_script(mocker, k3s):
    fetch = mocker.patch("sgdeploy.components.k3s.fetch_text", return_value="#!/bin/sh\n")
    run = mocker.patch("sgdeploy.components.k3s.run_elevated_command")
    ctx = RunContext()

    k3s.install(ctx)

    fetch.assert_called_once_with("https://get.k3s.io", ctx=ctx, current_logger=k3s.logger)
    assert run.call_args.args[0] == ["sh", "-s", "-"]
    assert run.call_args.kwargs["cmd_input"] == "#!/bin/sh\n"
    assert run.call_args.kwargs["ctx"] is ctx
    assert "INSTALL_K3S_EXEC" in run.call_args.kwargs["env"]


def test_install_download_failure_propagates(mocker, k3s):
    error = ConnectionError("no route to host")
    mocker.patch("sgdeploy.components.k3s.fetch_text", side_effect=error)
    run = mocker.patch("sgdeploy.components.k3s.run_elevated_command")

    with pytest.raises(ConnectionError):
        k3s.install(RunContext())

    run.assert_not_called()

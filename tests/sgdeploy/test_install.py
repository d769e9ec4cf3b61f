# tests/sgdeploy/test_install.py
# -*- coding: utf-8 -*-
"""
Tests for the host bootstrap sequence, run against fake collaborators.
"""

import subprocess
from unittest.mock import ANY, MagicMock, call

import pytest

from common.orchestrator import OperationCancelled, RunContext
from sgdeploy.capabilities import HostCollaborators
from sgdeploy.install import Installer
from sgdeploy.preflight import AuthorizationError, UserIdentity

KERNEL_CALLS = [
    ("set_inotify_max_user_watches", True, 128_000),
    ("set_vm_max_map_count", True, 300_000),
    ("set_soft_nproc", False, 8_192),
    ("set_hard_nproc", False, 16_384),
    ("set_soft_nofile", False, 262_144),
    ("set_hard_nofile", False, 262_144),
]

IMAGES = [
    "docker.io/sourcegraph/frontend:5.2.4",
    "docker.io/sourcegraph/gitserver:5.2.4",
    "docker.io/sourcegraph/searcher:5.2.4",
]


@pytest.fixture
def parent():
    """One mock whose children are the collaborators, so call order is recorded across all of them."""
    mock = MagicMock()
    mock.identity.return_value = UserIdentity(name="root", uid=0)
    mock.distro.is_amazon_linux.return_value = False
    mock.disk.is_mounted.return_value = False
    mock.images.images.return_value = list(IMAGES)
    return mock


@pytest.fixture
def collaborators(parent, memory_assets):
    return HostCollaborators(
        identity=parent.identity,
        kernel=parent.kernel,
        distro=parent.distro,
        disk=parent.disk,
        k3s=parent.k3s,
        containerd=parent.containerd,
        helm=parent.helm,
        images=parent.images,
        deployer=parent.deployer,
        assets=memory_assets,
        services=parent.services,
    )


@pytest.fixture
def installer(app_settings, collaborators, metrics, mock_logger, tmp_services):
    return Installer(
        app_settings,
        collaborators,
        logger=mock_logger,
        metrics=metrics,
        services=tmp_services,
    )


def _names(parent):
    return [name for name, _args, _kwargs in parent.mock_calls]


class TestPreflight:

    def test_non_root_fails_before_touching_host(self, installer, parent, service_dirs):
        parent.identity.return_value = UserIdentity(name="ec2-user", uid=1000)

        with pytest.raises(AuthorizationError):
            installer.run(RunContext())

        assert _names(parent) == ["identity"]
        unit_dir, bin_dir = service_dirs
        assert list(unit_dir.iterdir()) == []
        assert list(bin_dir.iterdir()) == []

    def test_identity_lookup_error_propagates_unchanged(self, installer, parent):
        error = KeyError("uid 4242 not in passwd")
        parent.identity.side_effect = error

        with pytest.raises(KeyError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        assert parent.kernel.mock_calls == []


class TestKernel:

    def test_settings_applied_in_order_with_fixed_values(self, installer, parent):
        ctx = RunContext()
        installer.run(ctx)

        expected = [
            getattr(call.kernel, name)(ctx, value) if takes_ctx else getattr(call.kernel, name)(value)
            for name, takes_ctx, value in KERNEL_CALLS
        ]
        kernel_calls = [c for c in parent.mock_calls if c[0].startswith("kernel.")]
        assert kernel_calls == expected

    @pytest.mark.parametrize("failing", range(len(KERNEL_CALLS)))
    def test_failure_stops_remaining_settings(self, installer, parent, failing):
        error = OSError(13, "Permission denied")
        getattr(parent.kernel, KERNEL_CALLS[failing][0]).side_effect = error

        with pytest.raises(OSError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        attempted = [n for n in _names(parent) if n.startswith("kernel.")]
        assert attempted == [f"kernel.{name}" for name, _, _ in KERNEL_CALLS[: failing + 1]]
        parent.distro.is_amazon_linux.assert_not_called()
        parent.containerd.install.assert_not_called()


class TestDataVolume:

    def test_other_distribution_skips_volume_and_version_stamp(self, installer, parent):
        parent.disk.is_mounted.return_value = True

        installer.run(RunContext())

        assert parent.disk.mock_calls == []
        parent.deployer.write_sourcegraph_version.assert_not_called()

    def test_already_mounted_is_never_reformatted(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        parent.disk.is_mounted.return_value = True

        installer.run(RunContext())
        installer.run(RunContext())

        assert parent.disk.is_mounted.call_args_list == [
            call("/mnt/data", "/dev/nvme1n1"),
            call("/mnt/data", "/dev/nvme1n1"),
        ]
        parent.disk.new_disk.assert_not_called()

    def test_unmounted_volume_is_provisioned_once(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        ctx = RunContext()

        installer.run(ctx)

        parent.disk.new_disk.assert_called_once_with(
            ctx, "/mnt/data", "/dev/nvme1n1", "xfs", mount=True
        )

    def test_mount_query_failure_aborts(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        error = OSError(2, "No such file or directory", "/proc/self/mounts")
        parent.disk.is_mounted.side_effect = error

        with pytest.raises(OSError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        parent.disk.new_disk.assert_not_called()
        parent.k3s.link_data_volumes.assert_not_called()

    def test_provisioning_failure_aborts(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        error = subprocess.CalledProcessError(1, ["mkfs.xfs", "/dev/nvme1n1"])
        parent.disk.new_disk.side_effect = error

        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        parent.k3s.link_data_volumes.assert_not_called()


class TestPrefetch:

    def test_failed_pulls_do_not_stop_the_run(self, installer, parent, metrics):
        def pull(ctx, ref):
            if ref in IMAGES[:2]:
                raise subprocess.CalledProcessError(1, ["ctr", "images", "pull", ref])

        parent.images.pull.side_effect = pull
        seen = []
        installer.on_prefetch = seen.append

        installer.run(RunContext())

        pulled = sorted(c.args[1] for c in parent.images.pull.call_args_list)
        assert pulled == sorted(IMAGES)
        parent.k3s.install.assert_called_once()
        assert installer.prefetch_stats.attempted == 3
        assert installer.prefetch_stats.failed == 2
        assert seen == [installer.prefetch_stats]
        assert metrics.registry.get_sample_value(
            "sgdeploy_image_pulls_total", {"status": "failure"}
        ) == 2.0
        assert metrics.registry.get_sample_value(
            "sgdeploy_image_pulls_total", {"status": "success"}
        ) == 1.0

    def test_failing_hooks_do_not_stop_the_run(self, installer, parent, mocker):
        mocker.patch.object(installer, "_record_pull", side_effect=ValueError("exporter down"))
        installer.on_prefetch = MagicMock(side_effect=RuntimeError("dashboard down"))

        installer.run(RunContext())

        assert parent.images.pull.call_count == len(IMAGES)
        assert installer.prefetch_stats.attempted == len(IMAGES)
        installer.on_prefetch.assert_called_once_with(installer.prefetch_stats)
        parent.k3s.install.assert_called_once()
        assert parent.services.enable.call_count == 2

    def test_every_pull_failing_still_succeeds(self, installer, parent):
        parent.images.pull.side_effect = RuntimeError("registry unreachable")

        installer.run(RunContext())

        assert parent.images.pull.call_count == len(IMAGES)
        assert parent.services.enable.call_count == 2

    def test_prefetch_runs_between_containerd_and_k3s(self, installer, parent):
        installer.run(RunContext())

        names = _names(parent)
        assert names.index("containerd.install") < names.index("images.images")
        assert max(i for i, n in enumerate(names) if n == "images.pull") < names.index("k3s.install")


class TestSequence:

    def test_full_order_on_amazon_linux(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        ctx = RunContext()

        installer.run(ctx)

        names = [n for n in _names(parent) if n != "images.pull"]
        assert names == [
            "identity",
            "kernel.set_inotify_max_user_watches",
            "kernel.set_vm_max_map_count",
            "kernel.set_soft_nproc",
            "kernel.set_hard_nproc",
            "kernel.set_soft_nofile",
            "kernel.set_hard_nofile",
            "distro.is_amazon_linux",
            "disk.is_mounted",
            "disk.new_disk",
            "k3s.link_data_volumes",
            "containerd.install",
            "images.images",
            "k3s.install",
            "helm.install",
            "deployer.unpack_k8s_configs",
            "distro.is_amazon_linux",
            "deployer.write_sourcegraph_version",
            "services.enable",
            "services.enable",
        ]
        assert parent.services.enable.call_args_list == [
            call(ctx, "sg-init.service"),
            call(ctx, "sourcegraphd.service"),
        ]

    @pytest.mark.parametrize(
        "failing, never_called",
        [
            ("k3s.link_data_volumes", "containerd.install"),
            ("containerd.install", "images.images"),
            ("k3s.install", "helm.install"),
            ("helm.install", "deployer.unpack_k8s_configs"),
            ("deployer.unpack_k8s_configs", "services.enable"),
        ],
    )
    def test_collaborator_failure_is_returned_verbatim(self, installer, parent, failing, never_called):
        error = RuntimeError(f"{failing} exploded")
        target = parent
        for part in failing.split("."):
            target = getattr(target, part)
        target.side_effect = error

        with pytest.raises(RuntimeError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        assert never_called not in _names(parent)

    def test_version_stamp_failure_aborts_before_services(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        parent.disk.is_mounted.return_value = True
        error = KeyError("ec2-user")
        parent.deployer.write_sourcegraph_version.side_effect = error

        with pytest.raises(KeyError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        parent.services.enable.assert_not_called()

    def test_cancelled_context_stops_before_preflight(self, installer, parent):
        ctx = RunContext()
        ctx.cancel()

        with pytest.raises(OperationCancelled):
            installer.run(ctx)

        assert parent.mock_calls == []

    def test_step_metrics_recorded(self, installer, metrics):
        installer.run(RunContext())

        assert metrics.registry.get_sample_value(
            "sgdeploy_steps_total", {"step": "Preflight", "status": "success"}
        ) == 1.0
        assert metrics.registry.get_sample_value(
            "sgdeploy_steps_total", {"step": "sourcegraphd service", "status": "success"}
        ) == 1.0


class TestServices:

    def test_missing_binary_writes_unit_but_never_enables(self, installer, parent, memory_assets, service_dirs):
        del memory_assets.files["bin/sg-init"]
        unit_dir, bin_dir = service_dirs

        with pytest.raises(FileNotFoundError):
            installer.run(RunContext())

        assert (unit_dir / "sg-init.service").read_bytes() == memory_assets.files["bin/sg-init.service"]
        assert not (bin_dir / "sg-init").exists()
        parent.services.enable.assert_not_called()
        assert "bin/sourcegraphd.service" not in memory_assets.reads

    def test_enable_failure_aborts_second_service(self, installer, parent, service_dirs):
        error = subprocess.CalledProcessError(1, ["systemctl", "enable", "--now", "sg-init.service"])
        parent.services.enable.side_effect = error
        unit_dir, _ = service_dirs

        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            installer.run(RunContext())

        assert excinfo.value is error
        parent.services.enable.assert_called_once_with(ANY, "sg-init.service")
        assert not (unit_dir / "sourcegraphd.service").exists()


class TestScenarios:

    def test_root_other_distribution_one_pull_fails(self, installer, parent, memory_assets, service_dirs):
        def pull(ctx, ref):
            if ref == IMAGES[1]:
                raise RuntimeError("pull failed")

        parent.images.pull.side_effect = pull
        ctx = RunContext()

        installer.run(ctx)

        assert parent.images.pull.call_count == 3
        assert installer.prefetch_stats.failed == 1
        assert parent.disk.mock_calls == []
        parent.deployer.write_sourcegraph_version.assert_not_called()

        unit_dir, bin_dir = service_dirs
        for name in ("sg-init", "sourcegraphd"):
            assert (unit_dir / f"{name}.service").read_bytes() == memory_assets.files[f"bin/{name}.service"]
            assert (bin_dir / name).read_bytes() == memory_assets.files[f"bin/{name}"]
        assert parent.services.enable.call_args_list == [
            call(ctx, "sg-init.service"),
            call(ctx, "sourcegraphd.service"),
        ]

    def test_root_amazon_linux_already_mounted(self, installer, parent):
        parent.distro.is_amazon_linux.return_value = True
        parent.disk.is_mounted.return_value = True

        installer.run(RunContext())

        parent.disk.new_disk.assert_not_called()
        parent.deployer.write_sourcegraph_version.assert_called_once_with("5.2.4", "ec2-user")

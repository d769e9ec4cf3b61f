# sgdeploy/cli.py
# -*- coding: utf-8 -*-
"""
Command line entry point: ``sg-deploy install``.
"""

import click

from common.logging_config import setup_logging
from common.metrics import InstallerMetrics
from common.orchestrator import RunContext
from sgdeploy import __version__
from sgdeploy.capabilities import default_collaborators
from sgdeploy.config_loader import DEFAULT_CONFIG_FILE, load_app_settings
from sgdeploy.install import Installer
from sgdeploy.system.distro import distribution_id


@click.group()
@click.version_option(__version__, prog_name="sg-deploy")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="YAML configuration file. Ignored if it does not exist.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to the console.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write JSON logs, always at debug level, to this file.",
)
@click.option(
    "--metrics-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write Prometheus metrics here when the run ends, for the node-exporter textfile collector.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up after this many seconds.",
)
@click.pass_context
def cli(ctx, config_file, verbose, log_file, metrics_file, timeout):
    """
    Bootstrap a Linux host into a single-node Sourcegraph instance.

    Must be run as root.
    """
    ctx.ensure_object(dict)
    ctx.obj.update({
        "config_file": config_file,
        "verbose": verbose,
        "log_file": log_file,
        "metrics_file": metrics_file,
        "timeout": timeout,
    })


@cli.command()
@click.pass_obj
def install(options):
    """
    Tune the kernel, install containerd, k3s and helm, deploy Sourcegraph
    and install its host services.
    """
    logger = setup_logging(
        log_level="DEBUG" if options["verbose"] else None,
        log_file_path=options["log_file"],
    )
    metrics = InstallerMetrics()

    try:
        app_settings = load_app_settings(options["config_file"], current_logger=logger)
        metrics.set_install_info(app_settings.sourcegraph_version, distribution_id())
        installer = Installer(
            app_settings,
            default_collaborators(app_settings, logger),
            logger=logger,
            metrics=metrics,
        )
        installer.run(RunContext(options["timeout"]))
    except Exception as e:
        logger.debug("Install failed.", exc_info=True)
        raise click.ClickException(str(e)) from e
    finally:
        if options["metrics_file"]:
            try:
                metrics.write_textfile(options["metrics_file"])
            except OSError as e:
                logger.warning(f"Could not write metrics to {options['metrics_file']}: {e}")

    click.echo("Sourcegraph installed.")

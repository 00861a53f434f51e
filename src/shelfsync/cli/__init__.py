# ABOUTME: CLI package for shelfsync, built on Click.
# ABOUTME: Defines the root command group, logging setup, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from shelfsync.cli.commands import inspect_cmd, ls_cmd, rm_cmd, sync_cmd, verify_cmd


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


@click.group()
@click.version_option(package_name="shelfsync")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """shelfsync - a local EPUB library scanner and metadata cache."""
    _configure_logging(verbose)


cli.add_command(inspect_cmd.inspect)
cli.add_command(sync_cmd.sync)
cli.add_command(ls_cmd.ls)
cli.add_command(verify_cmd.verify)
cli.add_command(rm_cmd.rm)

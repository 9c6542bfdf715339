"""Console output helpers.

Everything goes through click so that output behaves the same in the CLI and
under ``click.testing.CliRunner``. Warnings and errors are written to stderr.
"""
import os

import click


def debug_enabled():
    return os.getenv("GITFORGE_DEBUG", "").lower() in ("1", "true", "yes")


def color_info(text):
    return click.style(str(text), fg="cyan")


def info(message):
    click.echo(message)


def warn(message):
    click.echo(click.style("WARNING: ", fg="yellow") + message, err=True)


def error(message):
    click.echo(click.style("ERROR: ", fg="red") + message, err=True)


def debug(message):
    if debug_enabled():
        click.echo(click.style("DEBUG: ", fg="blue") + message, err=True)

"""Entry points of the Concourse resource.

Concourse runs ``/opt/resource/{check,in,out}``; all three are links to the
same program, which dispatches on the name it was invoked as. The ``cogito``
click group exposes the same steps as subcommands for local use.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import TextIO

import click

from cogito.buildinfo import build_info
from cogito.check import check
from cogito.get import get
from cogito.put import ProdPutter, Putter, put
from ghstatus.config import ResourceConfig
from ghstatus.logging import configure_logging

logger = logging.getLogger(__name__)

VALID_COMMANDS = ("check", "in", "out")


def main() -> None:
    try:
        main_err(sys.stdin, sys.stdout, sys.stderr, sys.argv)
    except Exception as exc:
        print(f"cogito: error: {exc}", file=sys.stderr)
        sys.exit(1)


def main_err(
    stdin: TextIO,
    stdout: TextIO,
    stderr: TextIO,
    argv: list[str],
    putter: Putter | None = None,
) -> None:
    cmd = os.path.basename(argv[0]) if argv else ""
    if cmd not in VALID_COMMANDS:
        raise ValueError(f"invoked as '{cmd}'; want: one of {list(VALID_COMMANDS)} (argv: {argv})")

    raw = stdin.read()
    configure_logging(peek_log_level(raw), stream=stderr)
    logger.info(build_info())
    run_step(cmd, raw, stdout, argv[1:], ResourceConfig.load(), putter)


def run_step(
    cmd: str,
    raw: str,
    out: TextIO,
    args: list[str],
    config: ResourceConfig,
    putter: Putter | None = None,
) -> None:
    if cmd == "check":
        check(raw, out, args)
    elif cmd == "in":
        get(raw, out, args)
    elif cmd == "out":
        put(raw, out, args, putter or ProdPutter(config))
    else:
        raise ValueError(f"cli wiring error; please report: unknown step {cmd!r}")


def peek_log_level(raw: str) -> str:
    """Read ``source.log_level`` before the full request is validated."""
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ValueError(f"peeking into JSON for log_level: {exc}") from None
    source = data.get("source") if isinstance(data, dict) else None
    level = source.get("log_level") if isinstance(source, dict) else None
    return level or "info"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="COGITO_CONFIG",
    default=None,
    help="YAML file with retry and timeout settings",
)
@click.pass_context
def cli(ctx, config_path):
    """Cogito: report Concourse build status to GitHub and Google Chat.

    Each command reads the resource request as JSON on stdin.
    """
    try:
        ctx.obj = ResourceConfig.load(config_path)
    except ValueError as exc:
        click.echo(f"cogito: error: {exc}", err=True)
        sys.exit(1)


def _run(ctx: click.Context, cmd: str, args: tuple[str, ...]) -> None:
    stdout = click.get_text_stream("stdout")
    stderr = click.get_text_stream("stderr")
    try:
        raw = click.get_text_stream("stdin").read()
        configure_logging(peek_log_level(raw), stream=stderr)
        logger.info(build_info())
        run_step(cmd, raw, stdout, list(args), ctx.obj)
    except Exception as exc:
        click.echo(f"cogito: error: {exc}", err=True)
        sys.exit(1)


@cli.command("check")
@click.argument("args", nargs=-1)
@click.pass_context
def check_cmd(ctx, args):
    """Discover versions (always one dummy version)."""
    _run(ctx, "check", args)


@cli.command("in")
@click.argument("args", nargs=-1)
@click.pass_context
def in_cmd(ctx, args):
    """Fetch a version into OUTPUT_DIR (nothing is fetched)."""
    _run(ctx, "in", args)


@cli.command("out")
@click.argument("args", nargs=-1)
@click.pass_context
def out_cmd(ctx, args):
    """Publish the build state found in params, using INPUT_DIR."""
    _run(ctx, "out", args)


if __name__ == "__main__":
    main()

"""weftparse command line."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from weftparse import __version__
from weftparse.config import ConfigError, WeftConfig, default_config, find_config, load_config
from weftparse.errors import ParseFailure
from weftparse.grammar import ExpressionGrammar
from weftparse.lexer import LexError
from weftparse.project import scaffold

logger = logging.getLogger(__name__)


def _load(config_path: str | None) -> WeftConfig:
    """Load the explicit config, else the nearest weftparse.toml, else the default grammar."""
    try:
        if config_path is not None:
            return load_config(Path(config_path))
        try:
            return load_config(find_config())
        except FileNotFoundError:
            logger.debug("no config found, using the default grammar")
            return default_config()
    except ConfigError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)


def _grammar(ctx: click.Context) -> ExpressionGrammar:
    return ExpressionGrammar(_load(ctx.obj["config"]))


@click.group()
@click.version_option(__version__, prog_name="weftparse")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Grammar config (default: nearest weftparse.toml).")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Lex and parse expressions with a configurable operator grammar."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path


@main.command()
@click.argument("text")
@click.option("--all", "keep_skipped", is_flag=True, help="Include skipped tokens.")
@click.pass_context
def tokens(ctx: click.Context, text: str, keep_skipped: bool) -> None:
    """Print the tokens of TEXT."""
    grammar = _grammar(ctx)
    try:
        result = grammar.tokenize(text, keep_skipped=keep_skipped)
    except LexError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1)
    for token in result:
        click.echo(f"{token.kind:<12} {token.content!r:<12} {token.position}")


@main.command()
@click.argument("text")
@click.pass_context
def tree(ctx: click.Context, text: str) -> None:
    """Parse TEXT and print it fully parenthesised."""
    grammar = _grammar(ctx)
    try:
        expr = grammar.parse(text)
    except (LexError, ParseFailure) as e:
        click.echo(str(e), err=True)
        raise SystemExit(1)
    click.echo(str(expr))


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def check(ctx: click.Context, file: str) -> None:
    """Parse every non-blank line of FILE as an expression."""
    grammar = _grammar(ctx)
    lines = Path(file).read_text().splitlines()
    failures = 0
    checked = 0
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        checked += 1
        try:
            grammar.parse(line, f"{file}:{lineno}")
        except (LexError, ParseFailure) as e:
            failures += 1
            click.echo(f"{file}:{lineno}:", err=True)
            click.echo(str(e), err=True)
    if failures:
        click.echo(f"{failures} of {checked} expressions failed to parse", err=True)
        raise SystemExit(1)
    click.echo(f"checked {checked} expressions: no errors")


@main.command()
@click.argument("directory", default=".", type=click.Path(file_okay=False))
@click.option("--name", default=None, help="Grammar name (default: directory name).")
def init(directory: str, name: str | None) -> None:
    """Write a default weftparse.toml into DIRECTORY."""
    try:
        path = scaffold(Path(directory), name)
    except FileExistsError as e:
        click.echo(f"error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"created {path}")

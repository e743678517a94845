"""TOML config loading for weftparse.toml."""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "weftparse.toml"

FIXITIES = ("prefix", "postfix", "infix")
ASSOCIATIVITIES = ("left", "right", "none")
OPERATOR_RULE = "operator"

DEFAULT_CONFIG_TOML = """\
[grammar]
name = "{name}"

# Lexer rules are tried in order; the first rule that matches wins.
[[lexer.rules]]
name = "space"
pattern = '\\s+'
skip = true

[[lexer.rules]]
name = "number"
pattern = '[0-9]+(\\.[0-9]+)?'

[[lexer.rules]]
name = "identifier"
pattern = "[A-Za-z_][A-Za-z0-9_']*"

[[lexer.rules]]
name = "paren"
pattern = '[()]'

# No pattern: matches the longest operator symbol declared below.
[[lexer.rules]]
name = "operator"

[[operators]]
symbol = "-"
fixity = "prefix"
priority = 10

[[operators]]
symbol = "!"
fixity = "postfix"
priority = 10

[[operators]]
symbol = "^"
associativity = "right"
priority = 9

[[operators]]
symbol = "*"
priority = 8

[[operators]]
symbol = "/"
priority = 8

[[operators]]
symbol = "+"
priority = 6

[[operators]]
symbol = "-"
priority = 6

[[operators]]
symbol = "=="
associativity = "none"
priority = 4

[[operators]]
symbol = "<"
associativity = "none"
priority = 4
"""


class ConfigError(Exception):
    """A configuration file is malformed."""


@dataclass
class GrammarConfig:
    name: str = "untitled"


@dataclass
class RuleConfig:
    name: str
    pattern: str | None = None
    skip: bool = False


@dataclass
class OperatorConfig:
    symbol: str
    fixity: str = "infix"
    associativity: str = "left"
    priority: int = 0


@dataclass
class WeftConfig:
    grammar: GrammarConfig = field(default_factory=GrammarConfig)
    rules: list[RuleConfig] = field(default_factory=list)
    operators: list[OperatorConfig] = field(default_factory=list)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find weftparse.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_FILENAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> WeftConfig:
    """Parse a weftparse.toml file into a WeftConfig."""
    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
    config = config_from_dict(data)
    logger.debug(
        "loaded %s from %s: %d lexer rules, %d operators",
        config.grammar.name, path, len(config.rules), len(config.operators),
    )
    return config


def default_config(name: str = "arithmetic") -> WeftConfig:
    """The arithmetic grammar used when no weftparse.toml exists."""
    return config_from_dict(tomllib.loads(DEFAULT_CONFIG_TOML.format(name=name)))


def config_from_dict(data: dict[str, Any]) -> WeftConfig:
    config = WeftConfig()

    if "grammar" in data:
        config.grammar = GrammarConfig(name=data["grammar"].get("name", "untitled"))

    for i, raw in enumerate(data.get("lexer", {}).get("rules", [])):
        config.rules.append(_rule(i, raw))

    seen: set[tuple[str, str]] = set()
    for i, raw in enumerate(data.get("operators", [])):
        op = _operator(i, raw)
        if (op.symbol, op.fixity) in seen:
            raise ConfigError(f"operator {op.symbol!r} is declared twice as {op.fixity}")
        seen.add((op.symbol, op.fixity))
        config.operators.append(op)

    if config.operators and not any(r.name == OPERATOR_RULE and r.pattern is None for r in config.rules):
        config.rules.append(RuleConfig(OPERATOR_RULE))

    return config


def _rule(index: int, raw: dict[str, Any]) -> RuleConfig:
    name = raw.get("name")
    if not name:
        raise ConfigError(f"lexer rule #{index + 1} has no name")
    pattern = raw.get("pattern")
    if pattern is None and name != OPERATOR_RULE:
        raise ConfigError(f"lexer rule {name!r} has no pattern")
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"lexer rule {name!r} has an invalid pattern: {e}") from e
    return RuleConfig(name=name, pattern=pattern, skip=bool(raw.get("skip", False)))


def _operator(index: int, raw: dict[str, Any]) -> OperatorConfig:
    symbol = raw.get("symbol")
    if not symbol:
        raise ConfigError(f"operator #{index + 1} has no symbol")
    fixity = raw.get("fixity", "infix")
    if fixity not in FIXITIES:
        raise ConfigError(f"operator {symbol!r}: fixity must be one of {', '.join(FIXITIES)}")
    associativity = raw.get("associativity", "left")
    if associativity not in ASSOCIATIVITIES:
        raise ConfigError(
            f"operator {symbol!r}: associativity must be one of {', '.join(ASSOCIATIVITIES)}"
        )
    priority = raw.get("priority", 0)
    if not isinstance(priority, int) or isinstance(priority, bool):
        raise ConfigError(f"operator {symbol!r}: priority must be an integer")
    return OperatorConfig(symbol=symbol, fixity=fixity, associativity=associativity, priority=priority)

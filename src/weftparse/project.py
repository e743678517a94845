"""Scaffolding for `weftparse init`."""

from __future__ import annotations

from pathlib import Path

from weftparse.config import CONFIG_FILENAME, DEFAULT_CONFIG_TOML

_EXAMPLES_TEMPLATE = """\
1 + 2 * 3
-(a + b) ^ 2 ^ n
x! / (y - 1)
"""


def scaffold(directory: Path | None = None, name: str | None = None) -> Path:
    """Write a default weftparse.toml (and an example input) into ``directory``.

    Returns the config path. Raises FileExistsError if a config is already there.
    """
    base = (directory or Path.cwd()).resolve()
    config_path = base / CONFIG_FILENAME
    if config_path.exists():
        raise FileExistsError(f"{config_path} already exists")

    base.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TOML.format(name=name or base.name))

    examples = base / "examples.txt"
    if not examples.exists():
        examples.write_text(_EXAMPLES_TEMPLATE)

    return config_path

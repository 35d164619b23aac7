"""Configuration loading from environment variables and memctx.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_DATA_DIR = Path.home() / ".memctx" / "data"
_CONFIG_FILENAME = "memctx.toml"


@dataclass
class MemctxConfig:
    """Top-level memctx configuration."""

    data_dir: Path = _DEFAULT_DATA_DIR
    log_level: str = "INFO"
    default_entity_type: str = "memory"


def load_config(config_path: Path | None = None) -> MemctxConfig:
    """Load configuration from environment variables and optional memctx.toml.

    Priority: environment variables > memctx.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.memctx/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, Path.home() / ".memctx" / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    memory_data = file_data.get("memory", {})

    return MemctxConfig(
        data_dir=Path(
            os.getenv("MEMCTX_DATA_DIR", memory_data.get("data_dir", str(_DEFAULT_DATA_DIR)))
        ).expanduser(),
        log_level=os.getenv("MEMCTX_LOG_LEVEL", file_data.get("log_level", "INFO")),
        default_entity_type=os.getenv(
            "MEMCTX_DEFAULT_ENTITY_TYPE", memory_data.get("default_entity_type", "memory")
        ),
    )

"""Optional YAML defaults for the command line.

Example ``ipspatch.yaml``:

    debug: false
    legacy: false   # historical byte-exact encoder
    strict: true    # refuse offsets past 24 bits when creating
"""
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "ipspatch.yaml"


@dataclass(frozen=True)
class PatchConfig:
    debug: bool = False
    legacy: bool = False
    strict: bool = True

    def override(self, **values: Any) -> "PatchConfig":
        """Return a copy with every non-None value applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def load_config(path: str | Path | None = None) -> PatchConfig:
    if path is None:
        path = Path(DEFAULT_CONFIG_NAME)
        if not path.is_file():
            return PatchConfig()
    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return PatchConfig()
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(raw).__name__}")

    known = {f.name for f in fields(PatchConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(map(str, unknown))}")
    for k, v in raw.items():
        if not isinstance(v, bool):
            raise ConfigError(f"Config key '{k}' must be true or false, got {v!r}")
    return PatchConfig(**raw)

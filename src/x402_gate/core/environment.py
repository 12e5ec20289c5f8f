"""
Utilities for building the environment used to configure the payment gate.

Values are layered from the process environment, an optional ``.env`` file and
explicit overrides, and returned as a plain mapping for
:class:`x402_gate.core.config.ServerConfig`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, MutableMapping, Optional

ENV_PREFIX = "X402_"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _parse_env_file(path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return values

    for raw_line in data.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, value = line.split("=", 1)
        values[key.strip()] = _unquote(value.strip())
    return values


def load_env_file(
    path: str = ".env",
    *,
    environ: Optional[MutableMapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Load ``path`` into ``environ`` without replacing keys that are already set.

    The merged mapping is returned.
    """
    target: MutableMapping[str, str] = environ if environ is not None else os.environ
    for key, value in _parse_env_file(Path(path)).items():
        target.setdefault(key, value)
    return dict(target)


@dataclass(frozen=True)
class GateEnvironment:
    """
    The resolved ``X402_*`` settings, with unrelated variables dropped.
    """

    variables: Mapping[str, str]

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.variables.get(key)
        if value is None or value == "":
            return default
        return value


def build_environment(
    *,
    env_file: Optional[str] = ".env",
    base: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> GateEnvironment:
    """
    Assemble a :class:`GateEnvironment` from multiple sources.

    ``base`` defaults to :data:`os.environ`; ``env_file`` may be ``None`` to
    skip file loading. Values from the file never replace ``base`` values and
    ``overrides`` always win.
    """
    merged: Dict[str, str] = {
        key: value
        for key, value in (os.environ if base is None else base).items()
        if key.startswith(ENV_PREFIX)
    }

    if env_file is not None:
        for key, value in _parse_env_file(Path(env_file)).items():
            if key.startswith(ENV_PREFIX):
                merged.setdefault(key, value)

    if overrides:
        merged.update(overrides)

    return GateEnvironment(variables=merged)

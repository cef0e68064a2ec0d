"""Runtime configuration for Home Server Navigator.

Values come from ``NAVIGATOR_*`` environment variables, then command-line
flags override them (see :mod:`navigator.__main__`).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "NAVIGATOR_"

_TRUE = {"1", "true", "yes", "on"}


@dataclass
class NavigatorConfig:
    """Server, discovery and storage settings."""

    host: str = "0.0.0.0"
    port: int = 8080
    default_host: str = "localhost"
    data_file: str = "data/services.json"
    static_dir: str | None = None

    # Discovery
    probe_timeout: float = 3.0
    probe_concurrency: int = 16  # outbound probes in flight per pass
    command_timeout: float = 10.0
    discover_on_start: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> NavigatorConfig:
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            try:
                values[f.name] = _coerce(f.type, raw)
            except ValueError:
                logger.warning("Ignoring invalid %s%s=%r", ENV_PREFIX, f.name.upper(), raw)
        return cls(**values)

    def merged(self, **overrides: Any) -> NavigatorConfig:
        """Copy with every non-``None`` override applied."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data.update({k: v for k, v in overrides.items() if v is not None})
        return NavigatorConfig(**data)

    @property
    def data_path(self) -> Path:
        return Path(self.data_file)


def _coerce(type_name: Any, raw: str) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    type_name = str(type_name)
    if type_name == "bool":
        return raw.strip().lower() in _TRUE
    if type_name == "int":
        return int(raw)
    if type_name == "float":
        return float(raw)
    return raw

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .dependency_tree import DEFAULT_MAX_DEPTH

ENV_PREFIX = "RESULT_WORKBENCH_"


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value > 0 else default


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(ENV_PREFIX + name)
    try:
        value = float(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass
class WorkbenchSettings:
    """Process-wide knobs, read from the environment and overridable per command."""

    max_tree_depth: int = DEFAULT_MAX_DEPTH
    http_timeout: float = 8.0
    log_level: str = "WARNING"
    log_format: str = "console"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "WorkbenchSettings":
        env = os.environ if env is None else env
        log_format = env.get(ENV_PREFIX + "LOG_FORMAT", "console").lower()
        return cls(
            max_tree_depth=_int_env(env, "MAX_TREE_DEPTH", DEFAULT_MAX_DEPTH),
            http_timeout=_float_env(env, "HTTP_TIMEOUT", 8.0),
            log_level=env.get(ENV_PREFIX + "LOG_LEVEL", "WARNING").upper(),
            log_format=log_format if log_format in {"console", "json"} else "console",
        )

    def as_dict(self) -> dict:
        return {
            "max_tree_depth": self.max_tree_depth,
            "http_timeout": self.http_timeout,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }

# config.py
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    namespace: str
    resync_seconds: int
    cleanup_orphans: bool


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    try:
        value = int(environ.get(key, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get("HOSTPORT_DEBUG", "0") == "1"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Controller settings from the environment.
      NAMESPACE                   namespace to watch, empty for all namespaces
      RESYNC_SECONDS              watch cycle length; every cycle re-lists all pods
      CONTROLLER_CLEANUP_ORPHANS  1 deletes hp-* policies whose pod is gone
    HOSTPORT_DEBUG is read on each call through debug_enabled().
    """
    environ = os.environ if environ is None else environ
    return Settings(
        namespace=environ.get("NAMESPACE", ""),
        resync_seconds=_int(environ, "RESYNC_SECONDS", 300),
        cleanup_orphans=environ.get("CONTROLLER_CLEANUP_ORPHANS", "0") == "1",
    )

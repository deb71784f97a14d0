"""
inspection_config -- single public entrypoint for workflow configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way runtime code obtains
    configuration.  It loads ``defaults.yaml`` (or the file named by
    ``INSPECTION_CONFIG_PATH``), merges environment secrets, validates,
    and caches the frozen ``WorkflowConfig``.

Architecture position:
    Configuration.  Sits above ``inspection_kernel`` (it validates against
    kernel enumerations) and below ``inspection_services`` /
    ``inspection_api``.  The kernel MUST NEVER import from here.

Audit relevance:
    Every load emits an ``INSPECTION_CONFIG_TRACE`` log entry with the
    config id, version and checksum.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from inspection_config.loader import load_yaml_file, parse_config
from inspection_config.schema import WorkflowConfig

_logger = logging.getLogger("inspection_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

_active: WorkflowConfig | None = None
_lock = threading.Lock()


def load_config(path: Path | str | None = None) -> WorkflowConfig:
    """Load and validate a configuration file without caching it."""
    path = Path(path or os.environ.get("INSPECTION_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    config = parse_config(load_yaml_file(path))
    _logger.info(
        "INSPECTION_CONFIG_TRACE",
        extra={
            "trace_type": "INSPECTION_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


def get_active_config(path: Path | str | None = None) -> WorkflowConfig:
    """
    The ONLY public configuration entrypoint.

    The first call loads and caches; later calls return the cached object.
    ``reset_active_config()`` clears the cache.

    Raises:
        FileNotFoundError: if the configured YAML file does not exist.
        ValueError: if validation fails.
    """
    global _active
    with _lock:
        if _active is None:
            _active = load_config(path)
        return _active


def reset_active_config() -> None:
    """Drop the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "WorkflowConfig",
    "get_active_config",
    "load_config",
    "reset_active_config",
]

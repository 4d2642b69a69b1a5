"""
Settings loader (``rental_config.loader``).

Responsibility
--------------
Read YAML settings files and turn them into a ``RentalSettings`` snapshot.
``get_active_settings()`` is the one runtime entry point; it layers an
optional override file on top of the packaged ``defaults.yaml`` and emits
a ``RENTAL_CONFIG_TRACE`` log record with the snapshot's checksum.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``RentalError(CONFIGURATION_ERROR)`` from ``RentalSettings``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from rental_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from rental_config.schema import RentalSettings

_logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Returns an empty dict for an empty file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_settings(path: Path | str | None = None) -> RentalSettings:
    """
    Settings from ``defaults.yaml`` overlaid with ``path`` (if given).

    Keys in the override file replace the packaged defaults one by one.
    """
    from rental_config.provider import MappingConfigProvider
    from rental_config.schema import RentalSettings

    merged: dict[str, Any] = {}
    for provider in _providers(path):
        merged.update({key: provider.get(key) for key in provider.keys()})
    return RentalSettings.from_provider(MappingConfigProvider(merged))


def _providers(path: Path | str | None):
    from rental_config.provider import YamlConfigProvider

    yield YamlConfigProvider(DEFAULTS_PATH)
    if path is not None:
        yield YamlConfigProvider(path)


def get_active_settings(path: Path | str | None = None) -> RentalSettings:
    """
    The runtime entry point for settings.

    Not cached; callers hold the returned snapshot for the duration of an
    operation.
    """
    settings = load_settings(path)
    _logger.info(
        "RENTAL_CONFIG_TRACE",
        extra={
            "trace_type": "RENTAL_CONFIG_TRACE",
            "source": str(path) if path is not None else str(DEFAULTS_PATH),
            "checksum": compute_checksum(settings.to_dict()),
            "pricing_strategy": settings.pricing_strategy.value,
            "auto_approval": settings.auto_approval,
        },
    )
    return settings

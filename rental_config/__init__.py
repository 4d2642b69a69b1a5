"""
rental_config -- settings for the rental engine.

Responsibility:
    The single place settings come from.  ``get_active_settings()`` reads
    the packaged defaults plus an optional override file;
    ``RentalSettings.from_provider()`` adapts any ``ConfigProvider``.  Both
    produce a frozen ``RentalSettings`` snapshot.

Architecture position:
    Configuration.  Sits above ``rental_kernel`` and ``rental_engines`` and
    below ``rental_services``.  The kernel never imports this package;
    ``RentalSettings.validation_rules()`` and ``pricing_rates()`` translate
    the snapshot into the kernel's and engine's own inputs.
"""

from rental_config.loader import compute_checksum, get_active_settings, load_settings, load_yaml_file
from rental_config.provider import ConfigProvider, MappingConfigProvider, YamlConfigProvider
from rental_config.schema import RentalSettings

__all__ = [
    "ConfigProvider",
    "MappingConfigProvider",
    "YamlConfigProvider",
    "RentalSettings",
    "compute_checksum",
    "get_active_settings",
    "load_settings",
    "load_yaml_file",
]

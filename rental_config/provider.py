"""
Configuration read contract (``rental_config.provider``).

Responsibility
--------------
``ConfigProvider`` is the narrow interface the rental engine reads
settings through: ``get``, ``get_boolean``, ``get_int``, ``get_float`` and
``get_array``.  Two implementations ship here: an in-memory mapping (tests,
embedding applications) and a YAML file.

Architecture position
---------------------
**Config layer**.  Nothing in ``rental_kernel`` imports this module; the
service layer resolves a ``RentalSettings`` snapshot from a provider once
per operation and hands typed values down.

Failure modes
-------------
* A value that cannot be coerced to the requested type raises
  ``RentalError(CONFIGURATION_ERROR)`` naming the key.
* Missing keys return the caller's default; they are never an error.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from rental_config.loader import load_yaml_file
from rental_kernel.exceptions import ErrorKind, RentalError

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


@runtime_checkable
class ConfigProvider(Protocol):
    """Read-only key/value settings source."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def get_boolean(self, key: str, default: bool = False) -> bool: ...

    def get_int(self, key: str, default: int | None = None) -> int | None: ...

    def get_float(self, key: str, default: float | None = None) -> float | None: ...

    def get_array(self, key: str, default: list | None = None) -> list: ...


def _bad_value(key: str, value: Any, expected: str) -> RentalError:
    return RentalError(
        ErrorKind.CONFIGURATION_ERROR,
        f"Setting '{key}' must be {expected}, got {value!r}",
        key=key,
        value=value,
        expected=expected,
    )


class MappingConfigProvider:
    """Settings backed by a plain mapping."""

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Any] = dict(values or {})

    def __repr__(self) -> str:
        return f"<MappingConfigProvider keys={sorted(self._values)}>"

    def keys(self) -> list[str]:
        return sorted(self._values)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._values.get(key)
        return default if value is None else value

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        raise _bad_value(key, value, "a boolean")

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise _bad_value(key, value, "an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise _bad_value(key, value, "an integer")

    def get_float(self, key: str, default: float | None = None) -> float | None:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise _bad_value(key, value, "a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise _bad_value(key, value, "a number") from None

    def get_array(self, key: str, default: list | None = None) -> list:
        value = self._values.get(key)
        if value is None:
            return list(default or [])
        if isinstance(value, (list, tuple)):
            return list(value)
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        raise _bad_value(key, value, "a list")


class YamlConfigProvider(MappingConfigProvider):
    """
    Settings read from a YAML file with ``yaml.safe_load``.

    The file holds a flat mapping of setting keys, optionally nested under a
    top-level ``rental`` key.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        data = load_yaml_file(self.path)
        if not isinstance(data, dict):
            raise RentalError(
                ErrorKind.CONFIGURATION_ERROR,
                f"{self.path} does not contain a mapping",
                path=str(self.path),
            )
        section = data.get("rental", data)
        if not isinstance(section, dict):
            raise RentalError(
                ErrorKind.CONFIGURATION_ERROR,
                f"'rental' section of {self.path} is not a mapping",
                path=str(self.path),
            )
        super().__init__(section)

    def __repr__(self) -> str:
        return f"<YamlConfigProvider {self.path}>"

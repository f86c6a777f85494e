"""
Configuration management for the owserver client.

This module holds the ClientConfig Pydantic model (server address, unit and
display preferences) and the flag word computed from it, plus layered
configuration loading:

1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/owclient/config.yml or an explicit path)
3. Environment variables (OWCLIENT_* prefix, __ for nesting)
4. Command-line overrides (highest precedence)
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PORT = 4304
DEFAULT_ADDRESS = f"localhost:{DEFAULT_PORT}"
DEFAULT_CONFIG_PATH = Path("/etc/owclient/config.yml")

# =============================================================================
# Flag word bits
# =============================================================================
#
# Values are fixed by the owserver protocol. New options get a bit or
# sub-field value that is zero today; existing values never move.

BUS_RET = 0x00000002
PERSISTENCE = 0x00000004
ALIAS = 0x00000008
SAFEMODE = 0x00000010
UNCACHED = 0x00000020
OWNET = 0x00000100

TEMPERATURE_MASK = 0x00030000
PRESSURE_MASK = 0x001C0000
DEVICE_FORMAT_MASK = 0x07000000


class TemperatureScale(str, Enum):
    """Temperature scale owserver converts readings to."""

    CELSIUS = "C"
    FAHRENHEIT = "F"
    KELVIN = "K"
    RANKINE = "R"

    @property
    def flag_bits(self) -> int:
        return TEMPERATURE_BITS[self]


class PressureScale(str, Enum):
    """Pressure scale owserver converts readings to."""

    MBAR = "mbar"
    ATM = "atm"
    MMHG = "mmHg"
    INHG = "inHg"
    PSI = "psi"
    PA = "Pa"

    @property
    def flag_bits(self) -> int:
        return PRESSURE_BITS[self]


class DeviceFormat(str, Enum):
    """How owserver spells 1-Wire ids: family, id and crc8, with or without dots."""

    F_I = "f.i"
    FI = "fi"
    F_I_C = "f.i.c"
    F_IC = "f.ic"
    FI_C = "fi.c"
    FIC = "fic"

    @property
    def flag_bits(self) -> int:
        return DEVICE_FORMAT_BITS[self]


TEMPERATURE_BITS: dict[TemperatureScale, int] = {
    TemperatureScale.CELSIUS: 0x00000000,
    TemperatureScale.FAHRENHEIT: 0x00010000,
    TemperatureScale.KELVIN: 0x00020000,
    TemperatureScale.RANKINE: 0x00030000,
}

PRESSURE_BITS: dict[PressureScale, int] = {
    PressureScale.MBAR: 0x00000000,
    PressureScale.ATM: 0x00040000,
    PressureScale.MMHG: 0x00080000,
    PressureScale.INHG: 0x000C0000,
    PressureScale.PSI: 0x00100000,
    PressureScale.PA: 0x00140000,
}

DEVICE_FORMAT_BITS: dict[DeviceFormat, int] = {
    DeviceFormat.F_I: 0x00000000,
    DeviceFormat.FI: 0x01000000,
    DeviceFormat.F_I_C: 0x02000000,
    DeviceFormat.F_IC: 0x03000000,
    DeviceFormat.FI_C: 0x04000000,
    DeviceFormat.FIC: 0x05000000,
}


def _lookup_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Match an enum member by value, ignoring case."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted or member.name.lower() == wanted:
                return member
    return value


def describe_flags(flags: int) -> str:
    """
    Render a flag word as a short human-readable string.

    Example:
        >>> describe_flags(0x02000002)
        'C mbar f.i.c bus'
    """
    parts: list[str] = []
    for table, mask in (
        (TEMPERATURE_BITS, TEMPERATURE_MASK),
        (PRESSURE_BITS, PRESSURE_MASK),
        (DEVICE_FORMAT_BITS, DEVICE_FORMAT_MASK),
    ):
        field_bits = flags & mask
        name = next((m.value for m, bits in table.items() if bits == field_bits), "?")
        parts.append(name)

    for bit, name in (
        (BUS_RET, "bus"),
        (PERSISTENCE, "persist"),
        (ALIAS, "alias"),
        (SAFEMODE, "safe"),
        (UNCACHED, "uncached"),
        (OWNET, "ownet"),
    ):
        if flags & bit:
            parts.append(name)

    return " ".join(parts)


# =============================================================================
# Client Configuration
# =============================================================================


class ClientConfig(BaseModel):
    """owserver connection and display settings.

    Assignments are validated, so the config can be adjusted between calls
    (e.g. switching the temperature scale) without going invalid. The flag
    word is derived on demand and never stored.

    Attributes:
        address: owserver address as "host:port".
        temperature: Temperature scale for readings.
        pressure: Pressure scale for readings.
        device_format: 1-Wire id spelling in directory listings.
        hex: Show read data as hex and parse write values as hex.
        bare: Hide owserver's virtual directories (bus.x, uncached, ...).
        slash: Mark directory entries with a trailing "/".
        prune: Drop the standard id-property entries from listings.
        persistence: Ask owserver to keep the connection open.
        uncached: Ask owserver to bypass its cache.
        safemode: Ask owserver to refuse writes.
        alias: Ask owserver to show device aliases.
        timeout: Socket timeout in seconds; None blocks indefinitely.
        size: Read size limit; None uses the protocol default.
        offset: Read start position.
    """

    model_config = ConfigDict(validate_assignment=True)

    address: str = Field(
        default=DEFAULT_ADDRESS,
        description="owserver address as 'host:port' (a bare port means localhost)",
    )
    temperature: TemperatureScale = Field(
        default=TemperatureScale.CELSIUS,
        description="Temperature scale: C, F, K or R",
    )
    pressure: PressureScale = Field(
        default=PressureScale.MBAR,
        description="Pressure scale: mbar, atm, mmHg, inHg, psi or Pa",
    )
    device_format: DeviceFormat = Field(
        default=DeviceFormat.F_I,
        description="1-Wire id format: f.i, fi, f.i.c, f.ic, fi.c or fic",
    )
    hex: bool = Field(default=False, description="Hex display of data")
    bare: bool = Field(default=False, description="Hide virtual directories")
    slash: bool = Field(default=False, description="Trailing '/' on directories")
    prune: bool = Field(default=False, description="Hide id-property entries")
    persistence: bool = Field(default=False, description="Request persistence")
    uncached: bool = Field(default=False, description="Bypass owserver cache")
    safemode: bool = Field(default=False, description="Request owserver safe mode")
    alias: bool = Field(default=False, description="Show device aliases")
    timeout: float | None = Field(
        default=None,
        gt=0,
        description="Socket timeout in seconds (unset blocks indefinitely)",
    )
    size: int | None = Field(
        default=None,
        gt=0,
        lt=2**31,
        description="Largest number of bytes a read returns (unset: 65536)",
    )
    offset: int = Field(
        default=0,
        ge=0,
        lt=2**31,
        description="Byte position reads start at",
    )

    @field_validator("address", mode="before")
    @classmethod
    def validate_address(cls, v: Any) -> str:
        """Normalize the address to 'host:port'."""
        v = str(v).strip()
        if not v:
            raise ValueError("Address must not be empty")
        if v.isdigit():
            return f"localhost:{v}"
        host, sep, port = v.rpartition(":")
        if not sep or host.endswith(":") or (host.count(":") and not host.startswith("[")):
            # No port given (or an unbracketed IPv6 address)
            return f"{v}:{DEFAULT_PORT}"
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid port in address: {v}")
        return v

    @field_validator("temperature", mode="before")
    @classmethod
    def validate_temperature(cls, v: Any) -> Any:
        """Accept scale names in any case."""
        return _lookup_enum(TemperatureScale, v)

    @field_validator("pressure", mode="before")
    @classmethod
    def validate_pressure(cls, v: Any) -> Any:
        """Accept scale names in any case."""
        return _lookup_enum(PressureScale, v)

    @field_validator("device_format", mode="before")
    @classmethod
    def validate_device_format(cls, v: Any) -> Any:
        """Accept format names in any case."""
        return _lookup_enum(DeviceFormat, v)

    @property
    def host(self) -> str:
        """Host part of the address (IPv6 brackets removed)."""
        return self.address.rpartition(":")[0].strip("[]")

    @property
    def port(self) -> int:
        """Port part of the address."""
        return int(self.address.rpartition(":")[2])

    def compute_flags(self) -> int:
        """
        Build the flag word sent with every request.

        Pure function of the current settings: calling it twice without
        changing the config gives the same value.
        """
        flags = OWNET
        if not self.bare:
            flags |= BUS_RET
        if self.persistence:
            flags |= PERSISTENCE
        if self.alias:
            flags |= ALIAS
        if self.safemode:
            flags |= SAFEMODE
        if self.uncached:
            flags |= UNCACHED
        flags |= self.temperature.flag_bits
        flags |= self.pressure.flag_bits
        flags |= self.device_format.flag_bits
        return flags


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        json_format: Emit JSON lines instead of plain text.
    """

    level: str = Field(
        default="warning",
        description="Log level: debug, info, warning, error",
    )
    json_format: bool = Field(
        default=True,
        description="Emit JSON-formatted log lines",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"debug", "info", "warn", "warning", "error", "critical"}
        v_lower = v.lower()
        if v_lower not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(sorted(valid_levels))}"
            )
        if v_lower == "warn":
            return "warning"
        return v_lower


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Top-level configuration.

    Attributes:
        client: owserver connection and display settings.
        logging: Logging configuration.
    """

    client: ClientConfig = Field(
        default_factory=ClientConfig,
        description="owserver client settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` merged recursively into ``base``."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """Convert an environment variable string to bool, int, float or str."""
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _load_env_config(prefix: str = "OWCLIENT_") -> dict[str, Any]:
    """
    Load configuration from environment variables.

    Nested keys use a double underscore, e.g.
    ``OWCLIENT_CLIENT__ADDRESS=owserver.lan:4304``.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = key[len(prefix) :].lower().split("__")

        current = result
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        current[parts[-1]] = _parse_env_value(value)

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = "OWCLIENT_",
    overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Args:
        config_path: YAML configuration file. If None, the default path is
            used when it exists.
        env_prefix: Prefix for environment variables.
        overrides: Nested dict of values that win over everything else
            (the CLI passes its options here).

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist.
        pydantic.ValidationError: If the merged configuration is invalid.

    Example:
        >>> config = load_config(overrides={"client": {"temperature": "F"}})
        >>> config.client.temperature
        <TemperatureScale.FAHRENHEIT: 'F'>
    """
    config_dict: dict[str, Any] = {}

    if config_path is None:
        if DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    elif isinstance(config_path, str):
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))

    if overrides:
        config_dict = _deep_merge(config_dict, overrides)

    return AppConfig(**config_dict)

"""
Pure normalizer that converts raw sysfs reader output into typed readings.

Applies unit conversion, default labels, label filtering and ordering to
the raw text returned by :class:`~sysmon.src.reader.SysfsReader`.  Entries
whose text cannot be parsed are omitted with a warning; nothing raises.

This is a pure module: no I/O and no clock.

CHANGELOG:
- 2026-10-19: Add thermal zones and hwmon power sensors
- 2026-10-16: Add fan normalization
- 2026-10-14: Order CPU temperatures package-first
- 2026-10-13: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from sysmon.src.models import (
    CoreFrequency,
    FanReading,
    PowerSensorReading,
    SensorKind,
    TemperatureReading,
)
from sysmon.src.reader import RawChannel
from sysmon.src.units import parse_int, parse_khz_as_mhz, parse_micro, parse_millidegrees

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Label rules
# ---------------------------------------------------------------------------

_EXCLUDED_CPU_LABELS: tuple[str, ...] = ("gpu", "ambient", "composite", "nvme")
"""CPU-chip channels whose label contains one of these are not CPU sensors."""

_PACKAGE_LABELS: tuple[str, ...] = ("package", "tctl", "x86_pkg_temp")
"""Labels that denote a whole-package temperature, listed first."""

_CPU_THERMAL_ZONE_TYPES: tuple[str, ...] = ("cpu", "x86_pkg_temp", "core", "package")
"""Thermal zones whose type contains one of these are CPU sensors."""

_CORE_INDEX_RE = re.compile(r"(\d+)$")
_UNSAFE_KEY_CHARS_RE = re.compile(r"[^a-zA-Z0-9]")


def metric_key_fragment(text: str) -> str:
    """Replace every non-alphanumeric character with ``_`` for stat keys."""
    return _UNSAFE_KEY_CHARS_RE.sub("_", text)


def _default_temperature_label(channel: RawChannel, kind: SensorKind) -> str:
    if kind is SensorKind.MEMORY:
        return f"DDR5_Module_{channel.index}"
    return f"{channel.chip}_temp{channel.index}"


def _is_package_label(label: str) -> bool:
    lowered = label.lower()
    return any(marker in lowered for marker in _PACKAGE_LABELS)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_cpu_frequencies(raw: dict[str, str]) -> list[CoreFrequency]:
    """Convert ``{core_id: raw_khz}`` into readings ordered by core index."""
    readings: list[CoreFrequency] = []
    for core, text in raw.items():
        match = _CORE_INDEX_RE.search(core)
        mhz = parse_khz_as_mhz(text)
        if match is None or mhz is None:
            logger.warning("CPU frequency '%s': unparseable value %r", core, text)
            continue
        readings.append(CoreFrequency(core=core, index=int(match.group(1)), mhz=mhz))
    readings.sort(key=lambda r: r.index)
    return readings


def normalize_temperatures(
    channels: Iterable[RawChannel],
    *,
    kind: SensorKind,
) -> list[TemperatureReading]:
    """Convert raw temperature channels into readings in degrees Celsius.

    CPU readings skip non-CPU labels and are ordered package-first, then
    by label.  Memory readings keep discovery order.
    """
    readings: list[TemperatureReading] = []
    for channel in channels:
        celsius = parse_millidegrees(channel.raw)
        if celsius is None:
            logger.warning(
                "Temperature %s/temp%d: unparseable value %r",
                channel.chip,
                channel.index,
                channel.raw,
            )
            continue
        label = channel.label or _default_temperature_label(channel, kind)
        if kind is SensorKind.CPU and any(
            word in label.lower() for word in _EXCLUDED_CPU_LABELS
        ):
            continue
        readings.append(
            TemperatureReading(chip=channel.chip, label=label, celsius=celsius, kind=kind)
        )

    if kind is SensorKind.CPU:
        return order_cpu_temperatures(readings)
    return readings


def order_cpu_temperatures(readings: Iterable[TemperatureReading]) -> list[TemperatureReading]:
    """Order CPU readings package-first, then by case-insensitive label."""
    return sorted(readings, key=lambda r: (not _is_package_label(r.label), r.label.lower()))


def normalize_thermal_zones(channels: Iterable[RawChannel]) -> list[TemperatureReading]:
    """Convert CPU-related thermal zones into CPU temperature readings.

    Zones whose type does not name a CPU sensor are skipped.  The result is
    unordered; merge it with the hwmon readings through
    :func:`order_cpu_temperatures`.
    """
    readings: list[TemperatureReading] = []
    for channel in channels:
        label = channel.label or f"zone{channel.index}"
        if not any(marker in label.lower() for marker in _CPU_THERMAL_ZONE_TYPES):
            continue
        celsius = parse_millidegrees(channel.raw)
        if celsius is None:
            logger.warning(
                "Thermal zone %d: unparseable value %r", channel.index, channel.raw
            )
            continue
        readings.append(
            TemperatureReading(
                chip=channel.chip, label=label, celsius=celsius, kind=SensorKind.CPU
            )
        )
    return readings


def normalize_fans(channels: Iterable[RawChannel]) -> list[FanReading]:
    """Convert raw fan tachometer channels into RPM readings."""
    readings: list[FanReading] = []
    for channel in channels:
        rpm = parse_int(channel.raw)
        if rpm is None or rpm < 0:
            logger.warning(
                "Fan %s/fan%d: unparseable value %r",
                channel.chip,
                channel.index,
                channel.raw,
            )
            continue
        label = channel.label or f"{channel.chip}_fan{channel.index}"
        readings.append(FanReading(chip=channel.chip, label=label, rpm=rpm))
    return readings


def normalize_power_sensors(channels: Iterable[RawChannel]) -> list[PowerSensorReading]:
    """Convert raw hwmon power channels (uW) into readings in watts."""
    readings: list[PowerSensorReading] = []
    for channel in channels:
        watts = parse_micro(channel.raw)
        if watts is None:
            logger.warning(
                "Power %s/power%d: unparseable value %r",
                channel.chip,
                channel.index,
                channel.raw,
            )
            continue
        label = channel.label or f"{channel.chip}_power{channel.index}"
        readings.append(PowerSensorReading(chip=channel.chip, label=label, watts=watts))
    return readings


def normalize_energy_counters(raw: Iterable[tuple[str, str]]) -> list[tuple[str, int]]:
    """Parse ``(domain, raw_uj)`` pairs into ``(domain, uj)`` integers.

    Counters are unsigned; malformed or negative values are dropped.
    """
    counters: list[tuple[str, int]] = []
    for domain, text in raw:
        value = parse_int(text)
        if value is None or value < 0:
            logger.warning("Energy domain '%s': unparseable counter %r", domain, text)
            continue
        counters.append((domain, value))
    return counters

"""
Pure unit conversion helpers for sysfs register values.

The kernel exposes most hardware counters as integer text in a fixed
sub-unit (kHz, millidegrees Celsius, microwatts, microjoules, ...).  The
helpers here parse that text and scale it into engineering units.

Parsing never raises: malformed text, empty strings and non-finite values
are reported as ``None`` so the caller can omit the metric.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scale factors
# ---------------------------------------------------------------------------

KHZ_PER_MHZ: float = 1_000.0
MILLI_PER_UNIT: float = 1_000.0
MICRO_PER_UNIT: float = 1_000_000.0

MICROJOULES_PER_WATT_HOUR: float = 3.6e9
"""1 Wh = 3600 J = 3.6e9 uJ."""

WATT_HOURS_PER_KILOWATT_HOUR: float = 1_000.0


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_int(raw: str | None) -> int | None:
    """Parse sysfs integer text, returning ``None`` on any failure."""
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        logger.debug("Non-integer sysfs value: %r", raw)
        return None


def parse_float(raw: str | None) -> float | None:
    """Parse numeric sysfs text as a finite float.

    Integer text is the common case but some drivers report decimals.
    Returns ``None`` for empty, malformed, NaN or infinite values.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        logger.debug("Non-numeric sysfs value: %r", raw)
        return None
    if not math.isfinite(value):
        return None
    return value


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------


def khz_to_mhz(khz: float) -> float:
    """Convert a ``scaling_cur_freq`` reading (kHz) to MHz."""
    return khz / KHZ_PER_MHZ


def millidegrees_to_celsius(millidegrees: float) -> float:
    """Convert an hwmon ``tempN_input`` reading to degrees Celsius."""
    return millidegrees / MILLI_PER_UNIT


def micro_to_base(micro: float) -> float:
    """Convert any micro-unit (uV, uA, uW, uWh, uAh) to its base unit."""
    return micro / MICRO_PER_UNIT


def microjoules_to_joules(microjoules: float) -> float:
    """Convert an ``energy_uj`` counter value to joules."""
    return microjoules / MICRO_PER_UNIT


def microjoules_to_watt_hours(microjoules: float) -> float:
    """Convert an energy delta in microjoules to watt-hours."""
    return microjoules / MICROJOULES_PER_WATT_HOUR


def watt_hours_to_kilowatt_hours(watt_hours: float) -> float:
    """Convert watt-hours to kilowatt-hours."""
    return watt_hours / WATT_HOURS_PER_KILOWATT_HOUR


# ---------------------------------------------------------------------------
# Combined parse + convert
# ---------------------------------------------------------------------------


def parse_khz_as_mhz(raw: str | None) -> float | None:
    """Parse a kHz string and return MHz, or ``None`` if malformed."""
    value = parse_float(raw)
    return None if value is None else khz_to_mhz(value)


def parse_millidegrees(raw: str | None) -> float | None:
    """Parse a millidegree string and return degrees Celsius."""
    value = parse_float(raw)
    return None if value is None else millidegrees_to_celsius(value)


def parse_micro(raw: str | None) -> float | None:
    """Parse a micro-unit string and return the base-unit value."""
    value = parse_float(raw)
    return None if value is None else micro_to_base(value)

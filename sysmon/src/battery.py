"""
Battery estimator for Linux power_supply readings.

Converts the raw micro-unit fields of a battery's ``power_supply`` node into
a :class:`~sysmon.src.models.BatteryObservation`:

- uV / uA / uW / uWh / uAh are scaled to V / A / W / Wh / Ah.
- Missing power is derived as voltage x current.
- Negative current or power (reported by some drivers while charging) is
  normalized to its magnitude.
- Missing energy is derived from charge (Ah) x voltage.
- A remaining-time estimate is computed while charging or discharging.
- A qualitative state is derived from the status text and AC presence.

This is a pure function of its input: no I/O and no state between calls.

CHANGELOG:
- 2026-10-14: Derive capacity_pct from energy when capacity is not reported
- 2026-10-13: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sysmon.src.models import BatteryObservation, BatteryState
from sysmon.src.units import parse_float, parse_int, parse_micro

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Raw field names (power_supply attribute file names)
# ---------------------------------------------------------------------------

FIELD_STATUS = "status"
FIELD_AC_ONLINE = "ac_online"
FIELD_CAPACITY = "capacity"
FIELD_POWER_NOW = "power_now"
FIELD_CURRENT_NOW = "current_now"
FIELD_VOLTAGE_NOW = "voltage_now"
FIELD_ENERGY_NOW = "energy_now"
FIELD_ENERGY_FULL = "energy_full"
FIELD_CHARGE_NOW = "charge_now"
FIELD_CHARGE_FULL = "charge_full"

NUMERIC_FIELDS: tuple[str, ...] = (
    FIELD_POWER_NOW,
    FIELD_CURRENT_NOW,
    FIELD_VOLTAGE_NOW,
    FIELD_ENERGY_NOW,
    FIELD_ENERGY_FULL,
    FIELD_CHARGE_NOW,
    FIELD_CHARGE_FULL,
)
"""Micro-unit fields read from the battery node."""

UNKNOWN_STATUS = "Unknown"

_AC_STATES = frozenset({BatteryState.CHARGING, BatteryState.IDLE, BatteryState.FULL})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def derive_state(status: str, ac_connected: bool) -> BatteryState:
    """Map driver status text to a qualitative battery state.

    Matching is a case-insensitive substring test.  The more specific
    phrases are tested first because ``"charging"`` is a substring of both
    ``"discharging"`` and ``"not charging"``.
    """
    text = status.lower()
    fallback = BatteryState.IDLE if ac_connected else BatteryState.DISCHARGING
    if "not charging" in text:
        return fallback
    if "discharging" in text:
        return BatteryState.DISCHARGING
    if "charging" in text:
        return BatteryState.CHARGING
    if "full" in text:
        return BatteryState.FULL
    return fallback


def estimate_hours(
    status: str,
    power_w: float | None,
    energy_now_wh: float | None,
    energy_full_wh: float | None,
) -> float | None:
    """Hours until empty (discharging) or until full (charging).

    Only the status text decides the direction; AC presence does not.
    Returns ``None`` unless power is strictly positive and the energy
    values needed for that direction are known.
    """
    if power_w is None or power_w <= 0 or energy_now_wh is None:
        return None
    text = status.lower()
    if "not charging" in text:
        return None
    if "discharging" in text:
        return energy_now_wh / power_w
    if "charging" in text and energy_full_wh is not None:
        return max(energy_full_wh - energy_now_wh, 0.0) / power_w
    return None


def _capacity_pct(
    raw_capacity: str | None,
    energy_now_wh: float | None,
    energy_full_wh: float | None,
) -> float | None:
    capacity = parse_float(raw_capacity)
    if capacity is not None:
        return capacity
    if energy_now_wh is not None and energy_full_wh:
        return energy_now_wh / energy_full_wh * 100.0
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def estimate(raw: Mapping[str, str | None] | None) -> BatteryObservation | None:
    """Compute a battery observation from raw power_supply fields.

    Args:
        raw: Mapping of field name to raw sysfs text, as produced by the
            reader.  Recognized keys are ``status``, ``ac_online``,
            ``capacity`` and the micro-unit fields in
            :data:`NUMERIC_FIELDS`.  Any key may be missing.  ``None``
            means no battery device was found.

    Returns:
        A :class:`BatteryObservation`, or ``None`` when *raw* is ``None``.
    """
    if raw is None:
        return None

    status = (raw.get(FIELD_STATUS) or "").strip() or UNKNOWN_STATUS
    ac_connected = parse_int(raw.get(FIELD_AC_ONLINE)) == 1

    voltage_v = parse_micro(raw.get(FIELD_VOLTAGE_NOW))
    current_a = parse_micro(raw.get(FIELD_CURRENT_NOW))
    power_w = parse_micro(raw.get(FIELD_POWER_NOW))

    if power_w is None and voltage_v is not None and current_a is not None:
        power_w = voltage_v * current_a

    if current_a is not None:
        current_a = abs(current_a)
    if power_w is not None:
        power_w = abs(power_w)

    energy_now_wh = parse_micro(raw.get(FIELD_ENERGY_NOW))
    energy_full_wh = parse_micro(raw.get(FIELD_ENERGY_FULL))
    if voltage_v is not None:
        if energy_now_wh is None:
            charge_now_ah = parse_micro(raw.get(FIELD_CHARGE_NOW))
            if charge_now_ah is not None:
                energy_now_wh = charge_now_ah * voltage_v
        if energy_full_wh is None:
            charge_full_ah = parse_micro(raw.get(FIELD_CHARGE_FULL))
            if charge_full_ah is not None:
                energy_full_wh = charge_full_ah * voltage_v

    state = derive_state(status, ac_connected)

    # Plugged in with no measurable draw: report zero rather than absent.
    if ac_connected and state in _AC_STATES:
        if power_w is None:
            power_w = 0.0
        if current_a is None:
            current_a = 0.0

    observation = BatteryObservation(
        status=status,
        ac_connected=ac_connected,
        voltage_v=voltage_v,
        current_a=current_a,
        power_w=power_w,
        energy_now_wh=energy_now_wh,
        energy_full_wh=energy_full_wh,
        capacity_pct=_capacity_pct(
            raw.get(FIELD_CAPACITY), energy_now_wh, energy_full_wh
        ),
        estimated_hours=estimate_hours(status, power_w, energy_now_wh, energy_full_wh),
        state=state,
    )
    logger.debug(
        "Battery: status=%s state=%s power_w=%s hours=%s",
        status,
        state,
        power_w,
        observation.estimated_hours,
    )
    return observation

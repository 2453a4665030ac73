"""
Pydantic models for normalized hardware telemetry.

Defines the typed readings produced by the normalizer, the derived power
and battery results produced by the engine, and the snapshot returned to
the host application for each sample.  All values are in engineering units
(MHz, degrees Celsius, W, J, Wh, V, A).

Optional fields are ``None`` when the underlying sysfs value was absent or
malformed; they are never NaN.

CHANGELOG:
- 2026-10-19: Add PowerSensorReading
- 2026-10-14: Add capacity_pct to BatteryObservation
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class SensorKind(StrEnum):
    """Which temperature domain a reading belongs to."""

    CPU = "cpu"
    MEMORY = "memory"


class BatteryState(StrEnum):
    """Qualitative battery state derived from status text and AC presence."""

    CHARGING = "charging"
    DISCHARGING = "discharging"
    IDLE = "idle"
    FULL = "full"


class CoreFrequency(BaseModel):
    """Current frequency of one logical CPU.

    Attributes:
        core: Core identifier as named in sysfs (e.g. ``"cpu3"``).
        index: Numeric core index parsed from the identifier.
        mhz: Current scaling frequency in MHz.
    """

    core: str
    index: int
    mhz: float


class TemperatureReading(BaseModel):
    """A single hwmon temperature channel in degrees Celsius."""

    chip: str
    label: str
    celsius: float
    kind: SensorKind


class FanReading(BaseModel):
    """A single hwmon fan tachometer channel."""

    chip: str
    label: str
    rpm: int


class PowerSensorReading(BaseModel):
    """A single hwmon power channel in watts."""

    chip: str
    label: str
    watts: float


class DerivedPowerMetric(BaseModel):
    """Power derived from successive readings of one RAPL energy counter.

    Attributes:
        domain: RAPL domain name (e.g. ``"package-0"``, ``"dram"``).
        power_w: Smoothed instantaneous power in watts (rolling mean).
        energy_j: Latest raw counter value converted to joules.
        min_w: Minimum of the smoothed power series.
        max_w: Maximum of the smoothed power series.
        avg_w: Mean of the smoothed power series.
        total_wh: Energy accumulated from accepted samples, in Wh.
        total_kwh: ``total_wh`` expressed in kWh.
    """

    domain: str
    power_w: float
    energy_j: float
    min_w: float
    max_w: float
    avg_w: float
    total_wh: float
    total_kwh: float


class BatteryObservation(BaseModel):
    """Battery state computed from a single set of power_supply readings.

    Purely a function of the latest raw values; nothing is carried over
    between calls.  Electrical fields are ``None`` when they could neither
    be read nor derived.

    Attributes:
        status: Raw status text reported by the driver.
        ac_connected: Whether an AC adapter reports ``online``.
        voltage_v: Terminal voltage in volts.
        current_a: Current magnitude in amperes (sign normalized).
        power_w: Power magnitude in watts (sign normalized).
        energy_now_wh: Remaining energy in Wh.
        energy_full_wh: Energy at last full charge in Wh.
        capacity_pct: State of charge as a percentage.
        estimated_hours: Hours to empty (discharging) or to full (charging).
        state: Derived qualitative state.
    """

    status: str
    ac_connected: bool
    voltage_v: float | None = None
    current_a: float | None = None
    power_w: float | None = None
    energy_now_wh: float | None = None
    energy_full_wh: float | None = None
    capacity_pct: float | None = None
    estimated_hours: float | None = None
    state: BatteryState


class StatSummary(BaseModel):
    """Running statistics view for one metric key.

    ``avg`` is ``None`` until at least one value has been accepted.
    """

    min: float
    max: float
    avg: float | None = None
    current: float


class TelemetrySnapshot(BaseModel):
    """Everything produced by one sampling pass of the monitor."""

    ts: datetime
    cpu_frequencies: list[CoreFrequency] = Field(default_factory=list)
    cpu_temperatures: list[TemperatureReading] = Field(default_factory=list)
    memory_temperatures: list[TemperatureReading] = Field(default_factory=list)
    fans: list[FanReading] = Field(default_factory=list)
    power_sensors: list[PowerSensorReading] = Field(default_factory=list)
    power: list[DerivedPowerMetric] = Field(default_factory=list)
    battery: BatteryObservation | None = None
    stats: dict[str, StatSummary] = Field(default_factory=dict)

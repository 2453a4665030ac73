"""
Energy counter differentiator for RAPL-style powercap domains.

Each powercap domain exposes ``energy_uj``, a cumulative energy counter in
microjoules that only ever increases until the hardware register overflows
and wraps back to a small value.  Power is derived by differencing two
readings over the elapsed time between them.

Per domain the differentiator keeps:

- the previous raw reading and its timestamp (the differencing baseline),
- a bounded window of accepted instantaneous power samples,
- running min / max / sum / count over the smoothed power series,
- energy accumulated from accepted samples.

The baseline always advances to the latest reading, even when the derived
sample is rejected as implausible, so the next delta stays correct.

This module performs no I/O and does not read the clock; timestamps are
supplied by the caller in microseconds from a monotonic source.

CHANGELOG:
- 2026-10-15: Keep the min-at-zero reset behaviour, covered by a test
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from sysmon.src.models import DerivedPowerMetric
from sysmon.src.units import (
    microjoules_to_joules,
    microjoules_to_watt_hours,
    watt_hours_to_kilowatt_hours,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

COUNTER_RANGE: int = 2**32
"""Assumed hardware counter width.  At most one wrap between samples."""

WRAP_THRESHOLD: int = COUNTER_RANGE // 2
"""An energy delta larger than this is treated as a counter wrap."""

_UINT64_MASK: int = 2**64 - 1

MIN_TIME_DELTA_US: int = 100_000
"""Shortest accepted interval between readings (0.1 s, inclusive)."""

MAX_TIME_DELTA_US: int = 10_000_000
"""Longest accepted interval between readings (10 s, exclusive)."""

MAX_PLAUSIBLE_POWER_W: float = 1000.0
"""Upper bound (exclusive) for a plausible per-domain power sample."""

WINDOW_CAPACITY: int = 100
"""Number of accepted power samples retained per domain."""

SMOOTHING_SAMPLES: int = 10
"""Number of most recent samples averaged into the smoothed power."""


# ---------------------------------------------------------------------------
# Per-domain state
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class EnergyCounterState:
    """Mutable differencing state for one energy domain.

    Attributes:
        previous_energy_uj: Most recent raw counter reading, valid or not.
        previous_timestamp_us: Timestamp of ``previous_energy_uj``.
        power_readings_w: Accepted instantaneous power samples, oldest first.
        min_power_w: Minimum smoothed power.  ``0.0`` doubles as "unset".
        max_power_w: Maximum smoothed power.
        sum_power_w: Sum of all smoothed power values.
        count_samples: Number of accepted samples.
        cumulative_energy_wh: Energy accumulated from accepted samples.
    """

    previous_energy_uj: int
    previous_timestamp_us: int
    power_readings_w: deque[float] = field(
        default_factory=lambda: deque(maxlen=WINDOW_CAPACITY)
    )
    min_power_w: float = 0.0
    max_power_w: float = 0.0
    sum_power_w: float = 0.0
    count_samples: int = 0
    cumulative_energy_wh: float = 0.0

    @property
    def avg_power_w(self) -> float:
        if self.count_samples == 0:
            return 0.0
        return self.sum_power_w / self.count_samples


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def energy_delta_uj(previous_uj: int, raw_uj: int) -> int:
    """Return the energy consumed between two counter readings.

    The subtraction is performed with unsigned 64-bit semantics, matching
    the register type.  A counter that went backwards therefore shows up as
    an enormous delta, which is the signal that the 32-bit hardware counter
    wrapped once: the delta is then ``raw + (2**32 - previous)``.

    When the previous reading itself exceeds the 32-bit range the corrected
    delta is negative; the plausibility filter rejects it.
    """
    delta = (raw_uj - previous_uj) & _UINT64_MASK
    if delta > WRAP_THRESHOLD:
        delta = raw_uj + (COUNTER_RANGE - previous_uj)
    return delta


def power_watts(delta_uj: int, delta_us: int) -> float:
    """Convert an energy delta over a time delta to watts (uJ/us == W)."""
    if delta_us == 0:
        return 0.0
    return delta_uj / delta_us


def is_plausible(delta_us: int, watts: float) -> bool:
    """Return True when a derived sample falls inside the accepted window."""
    return (
        MIN_TIME_DELTA_US <= delta_us < MAX_TIME_DELTA_US
        and 0.0 <= watts < MAX_PLAUSIBLE_POWER_W
    )


def smoothed_power(readings: deque[float]) -> float:
    """Mean of the last ``min(SMOOTHING_SAMPLES, len(readings))`` samples."""
    tail = list(readings)[-SMOOTHING_SAMPLES:]
    return sum(tail) / len(tail)


# ---------------------------------------------------------------------------
# Differentiator
# ---------------------------------------------------------------------------


class EnergyDifferentiator:
    """Turns cumulative energy counter readings into smoothed power.

    One instance tracks any number of domains, keyed by domain name.  State
    for a domain is created on its first observation and lives as long as
    the instance; callers should use a stable, finite set of domain names.

    Not thread-safe: callers sharing an instance across threads must
    serialize access themselves.
    """

    def __init__(self) -> None:
        self._domains: dict[str, EnergyCounterState] = {}

    @property
    def domains(self) -> list[str]:
        """Names of all domains observed so far, in first-seen order."""
        return list(self._domains)

    def state(self, domain: str) -> EnergyCounterState | None:
        """Return the state for *domain*, or ``None`` if never observed."""
        return self._domains.get(domain)

    def observe(
        self,
        domain: str,
        raw_energy_uj: int,
        timestamp_us: int,
    ) -> DerivedPowerMetric | None:
        """Record one counter reading and derive power if possible.

        Args:
            domain: Energy domain name.
            raw_energy_uj: Cumulative counter value in microjoules.
            timestamp_us: Monotonic timestamp of the reading in microseconds.

        Returns:
            A :class:`DerivedPowerMetric` when the reading produced an
            accepted sample, or ``None`` for the first reading of a domain
            and for readings rejected by the plausibility filter.
        """
        state = self._domains.get(domain)
        if state is None:
            self._domains[domain] = EnergyCounterState(
                previous_energy_uj=raw_energy_uj,
                previous_timestamp_us=timestamp_us,
            )
            logger.debug("Energy domain '%s': baseline recorded", domain)
            return None

        delta_us = timestamp_us - state.previous_timestamp_us
        delta_uj = energy_delta_uj(state.previous_energy_uj, raw_energy_uj)
        watts = power_watts(delta_uj, delta_us)

        # Baseline advances whether or not the sample is accepted.
        state.previous_energy_uj = raw_energy_uj
        state.previous_timestamp_us = timestamp_us

        if not is_plausible(delta_us, watts):
            logger.debug(
                "Energy domain '%s': rejected sample (dt=%dus, dE=%duJ, P=%.4gW)",
                domain,
                delta_us,
                delta_uj,
                watts,
            )
            return None

        state.power_readings_w.append(watts)
        smoothed = smoothed_power(state.power_readings_w)

        # A minimum of exactly 0.0 counts as unset and is overwritten.
        if (
            state.count_samples == 0
            or state.min_power_w == 0.0
            or smoothed < state.min_power_w
        ):
            state.min_power_w = smoothed
        if state.count_samples == 0 or smoothed > state.max_power_w:
            state.max_power_w = smoothed
        state.sum_power_w += smoothed
        state.count_samples += 1
        state.cumulative_energy_wh += microjoules_to_watt_hours(delta_uj)

        return DerivedPowerMetric(
            domain=domain,
            power_w=smoothed,
            energy_j=microjoules_to_joules(raw_energy_uj),
            min_w=state.min_power_w,
            max_w=state.max_power_w,
            avg_w=state.avg_power_w,
            total_wh=state.cumulative_energy_wh,
            total_kwh=watt_hours_to_kilowatt_hours(state.cumulative_energy_wh),
        )

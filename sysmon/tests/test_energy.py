"""
Tests for the RAPL energy counter differentiator.

Verifies baseline handling, power derivation, 32-bit wraparound
correction, the plausibility filter, the rolling average window,
running statistics and cumulative energy.

CHANGELOG:
- 2026-10-15: Document the min-at-zero reset behaviour
- 2026-10-12: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging

import pytest
from sysmon.src.energy import (
    COUNTER_RANGE,
    WINDOW_CAPACITY,
    EnergyDifferentiator,
    energy_delta_uj,
    is_plausible,
    power_watts,
    smoothed_power,
)
from sysmon.src.models import DerivedPowerMetric

_SECOND_US = 1_000_000


def _feed_powers(
    diff: EnergyDifferentiator,
    domain: str,
    powers: list[float],
    *,
    start_energy_uj: int = 0,
    start_us: int = 0,
) -> list[DerivedPowerMetric | None]:
    """Observe a baseline then one reading per second producing *powers*."""
    energy = start_energy_uj
    now = start_us
    diff.observe(domain, energy, now)
    results = []
    for watts in powers:
        energy += int(watts * _SECOND_US)
        now += _SECOND_US
        results.append(diff.observe(domain, energy, now))
    return results


# ===========================================================================
# Baseline
# ===========================================================================


class TestBaseline:
    """The first observation of a domain only records a baseline."""

    def test_first_observation_returns_none(self) -> None:
        diff = EnergyDifferentiator()
        assert diff.observe("package-0", 123_456_789, 0) is None

    def test_first_observation_creates_state(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 500, 42)
        state = diff.state("package-0")
        assert state is not None
        assert state.previous_energy_uj == 500
        assert state.previous_timestamp_us == 42
        assert state.count_samples == 0
        assert len(state.power_readings_w) == 0

    def test_zero_counter_is_a_valid_baseline(self) -> None:
        diff = EnergyDifferentiator()
        assert diff.observe("dram", 0, 0) is None
        result = diff.observe("dram", 5_000_000, _SECOND_US)
        assert result is not None
        assert result.power_w == pytest.approx(5.0)

    def test_unknown_domain_has_no_state(self) -> None:
        assert EnergyDifferentiator().state("core") is None

    def test_domains_are_independent(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 0, 0)
        assert diff.observe("dram", 0, _SECOND_US) is None
        assert diff.domains == ["package-0", "dram"]


# ===========================================================================
# Power derivation
# ===========================================================================


class TestPowerDerivation:
    """Second reading yields power from the energy and time deltas."""

    def test_power_from_deltas(self) -> None:
        e1, t1 = 1_000_000, 0
        e2, t2 = 21_000_000, 1_000_000
        diff = EnergyDifferentiator()
        diff.observe("package-0", e1, t1)
        result = diff.observe("package-0", e2, t2)

        assert result is not None
        expected = (e2 - e1) / ((t2 - t1) / 1e6) / 1e6
        assert result.power_w == pytest.approx(expected)
        assert result.power_w == pytest.approx(20.0)

    def test_output_fields(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 1_000_000, 0)
        result = diff.observe("package-0", 21_000_000, _SECOND_US)

        assert result is not None
        assert result.domain == "package-0"
        assert result.energy_j == pytest.approx(21.0)
        assert result.min_w == pytest.approx(20.0)
        assert result.max_w == pytest.approx(20.0)
        assert result.avg_w == pytest.approx(20.0)
        assert result.total_wh == pytest.approx(20_000_000 / 3.6e9)
        assert result.total_kwh == pytest.approx(20_000_000 / 3.6e9 / 1000)

    def test_fractional_interval(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("core", 0, 0)
        result = diff.observe("core", 1_500_000, 500_000)
        assert result is not None
        assert result.power_w == pytest.approx(3.0)

    def test_power_watts_zero_interval(self) -> None:
        assert power_watts(1_000_000, 0) == 0.0


# ===========================================================================
# Wraparound
# ===========================================================================


class TestWraparound:
    """A counter that went backwards is treated as one 32-bit wrap."""

    def test_wrapped_delta_is_corrected(self) -> None:
        previous = 4_294_000_000
        raw = 1_000_000
        assert energy_delta_uj(previous, raw) == raw + (COUNTER_RANGE - previous)
        assert energy_delta_uj(previous, raw) == 1_967_296

    def test_plain_delta_untouched(self) -> None:
        assert energy_delta_uj(1_000, 5_000) == 4_000

    def test_wrapped_reading_yields_positive_power(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 4_294_000_000, 0)
        result = diff.observe("package-0", 1_000_000, _SECOND_US)

        assert result is not None
        assert result.power_w == pytest.approx(1.967296)
        assert result.total_wh == pytest.approx(1_967_296 / 3.6e9)

    def test_backwards_counter_beyond_32_bits_is_rejected(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 10_000_000_000, 0)
        assert diff.observe("package-0", 1_000, _SECOND_US) is None


# ===========================================================================
# Plausibility filter
# ===========================================================================


class TestPlausibilityFilter:
    """Implausible samples produce nothing but still advance the baseline."""

    @pytest.mark.parametrize("delta_us", [50_000, 20_000_000])
    def test_implausible_interval_rejected(self, delta_us: int) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 0, 0)
        energy = int(10 * delta_us)  # 10 W over the interval
        assert diff.observe("package-0", energy, delta_us) is None

    def test_interval_bounds(self) -> None:
        assert is_plausible(100_000, 10.0)
        assert is_plausible(9_999_999, 10.0)
        assert not is_plausible(99_999, 10.0)
        assert not is_plausible(10_000_000, 10.0)

    def test_power_bounds(self) -> None:
        assert is_plausible(_SECOND_US, 0.0)
        assert is_plausible(_SECOND_US, 999.9)
        assert not is_plausible(_SECOND_US, 1000.0)
        assert not is_plausible(_SECOND_US, -0.1)

    def test_excessive_power_rejected(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 0, 0)
        assert diff.observe("package-0", 2_000_000_000, _SECOND_US) is None

    def test_rejected_sample_advances_baseline(self) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 0, 0)
        assert diff.observe("package-0", 1_000_000, 50_000) is None

        state = diff.state("package-0")
        assert state is not None
        assert state.previous_energy_uj == 1_000_000
        assert state.previous_timestamp_us == 50_000

        result = diff.observe("package-0", 11_000_000, 1_050_000)
        assert result is not None
        assert result.power_w == pytest.approx(10.0)

    def test_rejected_sample_leaves_statistics_untouched(self) -> None:
        diff = EnergyDifferentiator()
        _feed_powers(diff, "package-0", [10.0])
        state = diff.state("package-0")
        assert state is not None
        before = (state.count_samples, state.sum_power_w, state.cumulative_energy_wh)

        diff.observe("package-0", state.previous_energy_uj + 100, state.previous_timestamp_us + 1)

        assert (state.count_samples, state.sum_power_w, state.cumulative_energy_wh) == before
        assert list(state.power_readings_w) == [10.0]

    def test_rejection_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        diff = EnergyDifferentiator()
        diff.observe("package-0", 0, 0)
        with caplog.at_level(logging.DEBUG, logger="sysmon.src.energy"):
            diff.observe("package-0", 1_000, 20_000_000)
        assert "rejected" in caplog.text


# ===========================================================================
# Rolling window
# ===========================================================================


class TestRollingAverage:
    """Smoothed power is the mean of the last ten accepted samples."""

    def test_mean_of_last_ten(self) -> None:
        diff = EnergyDifferentiator()
        results = _feed_powers(diff, "package-0", [float(k) for k in range(1, 13)])
        last = results[-1]
        assert last is not None
        assert last.power_w == pytest.approx(sum(range(3, 13)) / 10)

    def test_short_window_uses_all_samples(self) -> None:
        diff = EnergyDifferentiator()
        results = _feed_powers(diff, "package-0", [2.0, 4.0, 6.0])
        assert results[-1] is not None
        assert results[-1].power_w == pytest.approx(4.0)

    def test_window_capacity_bounded(self) -> None:
        diff = EnergyDifferentiator()
        _feed_powers(diff, "package-0", [5.0] * (WINDOW_CAPACITY + 50))
        state = diff.state("package-0")
        assert state is not None
        assert len(state.power_readings_w) == WINDOW_CAPACITY

    def test_smoothed_power_helper(self) -> None:
        from collections import deque

        assert smoothed_power(deque([1.0, 3.0])) == 2.0


# ===========================================================================
# Running statistics over the smoothed series
# ===========================================================================


class TestRunningStatistics:
    """min / max / avg track the smoothed power values."""

    def test_min_max_avg_of_smoothed_series(self) -> None:
        diff = EnergyDifferentiator()
        results = _feed_powers(diff, "package-0", [float(k) for k in range(1, 13)])
        last = results[-1]
        assert last is not None
        # Smoothed series: 1, 1.5, ..., 5.5, 6.5, 7.5
        assert last.min_w == pytest.approx(1.0)
        assert last.max_w == pytest.approx(7.5)
        assert last.avg_w == pytest.approx(46.5 / 12)

    def test_zero_minimum_is_overwritten_by_next_sample(self) -> None:
        """A measured 0 W minimum is treated as unset and replaced.

        Kept for compatibility with existing consumers even though a
        genuine 0 W minimum is lost.
        """
        diff = EnergyDifferentiator()
        results = _feed_powers(diff, "package-0", [0.0, 5.0])
        first, second = results
        assert first is not None and first.min_w == 0.0
        assert second is not None
        assert second.power_w == pytest.approx(2.5)
        assert second.min_w == pytest.approx(2.5)

    def test_cumulative_energy_accumulates_accepted_deltas(self) -> None:
        diff = EnergyDifferentiator()
        results = _feed_powers(diff, "package-0", [20.0, 20.0])
        last = results[-1]
        assert last is not None
        assert last.total_wh == pytest.approx(40_000_000 / 3.6e9)
        assert last.total_kwh == pytest.approx(last.total_wh / 1000)

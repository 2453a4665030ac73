"""
Telemetry monitor: the engine object owned by the host application.

Ties one sysfs reader to the derived-metric engine.  Each call to
:meth:`TelemetryMonitor.sample` reads every source once, normalizes the raw
text, differentiates the energy counters, estimates the battery state and,
when enabled, feeds the results into the statistics tracker.

The host owns the instance and decides the sampling cadence.  All state
(energy domains, statistics) lives on the instance; there is no module
level singleton.  Calls must be serialized by the host.

CHANGELOG:
- 2026-10-19: Merge CPU thermal zones, report hwmon power sensors
- 2026-10-16: Track fan and battery statistics
- 2026-10-14: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from sysmon.src.battery import estimate
from sysmon.src.config import MonitorSettings
from sysmon.src.energy import EnergyDifferentiator
from sysmon.src.models import (
    BatteryObservation,
    CoreFrequency,
    DerivedPowerMetric,
    FanReading,
    SensorKind,
    StatSummary,
    TelemetrySnapshot,
    TemperatureReading,
)
from sysmon.src.normalizer import (
    metric_key_fragment,
    normalize_cpu_frequencies,
    normalize_energy_counters,
    normalize_fans,
    normalize_power_sensors,
    normalize_temperatures,
    normalize_thermal_zones,
    order_cpu_temperatures,
)
from sysmon.src.reader import SysfsReader
from sysmon.src.stats import StatisticsTracker

logger = logging.getLogger(__name__)


def monotonic_us() -> int:
    """Monotonic clock in microseconds."""
    return time.monotonic_ns() // 1_000


class TelemetryMonitor:
    """Samples hardware telemetry and maintains derived metrics.

    Args:
        settings: Monitor configuration.
        reader: Raw sysfs reader.  Defaults to one rooted at
            ``settings.sysfs_root``.
        clock_us: Monotonic microsecond clock used to timestamp energy
            readings.  Injected by tests.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        *,
        reader: SysfsReader | None = None,
        clock_us: Callable[[], int] = monotonic_us,
    ) -> None:
        self.settings = settings
        self.reader = reader if reader is not None else SysfsReader(settings.sysfs_root)
        self.energy = EnergyDifferentiator()
        self.stats = StatisticsTracker()
        self._clock_us = clock_us

    # -- sampling ---------------------------------------------------------

    def sample_power(self) -> list[DerivedPowerMetric]:
        """Read every energy counter once and return accepted power metrics."""
        counters = normalize_energy_counters(self.reader.read_energy_counters())
        now_us = self._clock_us()
        metrics: list[DerivedPowerMetric] = []
        for domain, energy_uj in counters:
            metric = self.energy.observe(domain, energy_uj, now_us)
            if metric is not None:
                metrics.append(metric)
        return metrics

    def _cpu_temperatures(self) -> list[TemperatureReading]:
        """hwmon CPU channels merged with CPU thermal zones, package first."""
        hwmon = normalize_temperatures(
            self.reader.read_temperature_channels(
                self.settings.cpu_sensor_drivers, self.settings.max_temp_channels
            ),
            kind=SensorKind.CPU,
        )
        zones = normalize_thermal_zones(self.reader.read_thermal_zones())
        return order_cpu_temperatures(hwmon + zones)

    def sample_battery(self) -> BatteryObservation | None:
        """Read and estimate the battery, or ``None`` when there is none."""
        return estimate(self.reader.read_battery())

    def sample(self) -> TelemetrySnapshot:
        """Take one full sample of every telemetry source."""
        settings = self.settings
        snapshot = TelemetrySnapshot(
            ts=datetime.now(tz=UTC),
            cpu_frequencies=normalize_cpu_frequencies(self.reader.read_cpu_frequencies()),
            cpu_temperatures=self._cpu_temperatures(),
            memory_temperatures=normalize_temperatures(
                self.reader.read_temperature_channels(
                    [settings.memory_sensor_driver], settings.memory_temp_channels
                ),
                kind=SensorKind.MEMORY,
            ),
            fans=normalize_fans(self.reader.read_fan_channels()),
            power_sensors=normalize_power_sensors(self.reader.read_power_channels()),
            power=self.sample_power(),
            battery=self.sample_battery(),
        )

        if settings.track_stats:
            self._track(snapshot)
            snapshot.stats = self.stats.get()

        logger.debug(
            "Sample: cores=%d cpu_temps=%d mem_temps=%d fans=%d power_sensors=%d "
            "power=%d battery=%s",
            len(snapshot.cpu_frequencies),
            len(snapshot.cpu_temperatures),
            len(snapshot.memory_temperatures),
            len(snapshot.fans),
            len(snapshot.power_sensors),
            len(snapshot.power),
            snapshot.battery is not None,
        )
        return snapshot

    # -- statistics -------------------------------------------------------

    def _track(self, snapshot: TelemetrySnapshot) -> None:
        self._track_frequencies(snapshot.cpu_frequencies)
        self._track_temperatures(snapshot.cpu_temperatures, snapshot.memory_temperatures)
        self._track_fans(snapshot.fans)
        for metric in snapshot.power:
            self.stats.update(f"rapl_{metric_key_fragment(metric.domain)}_power", metric.power_w)
        if snapshot.battery is not None and snapshot.battery.power_w is not None:
            self.stats.update("battery_power", snapshot.battery.power_w)

    def _track_frequencies(self, frequencies: list[CoreFrequency]) -> None:
        if not frequencies:
            return
        avg = sum(f.mhz for f in frequencies) / len(frequencies)
        self.stats.update("cpu_avg_freq", avg)
        for position, freq in enumerate(frequencies):
            self.stats.update(f"cpu_core{position}_freq", freq.mhz)

    def _track_temperatures(
        self,
        cpu: list[TemperatureReading],
        memory: list[TemperatureReading],
    ) -> None:
        for reading in cpu:
            self.stats.update(f"cpu_temp_{metric_key_fragment(reading.label)}", reading.celsius)
        for position, reading in enumerate(memory):
            self.stats.update(f"ddr5_module_{position}_temp", reading.celsius)

    def _track_fans(self, fans: list[FanReading]) -> None:
        for position, fan in enumerate(fans):
            self.stats.update(f"fan_{position}_speed", float(fan.rpm))

    def get_stats(self) -> dict[str, StatSummary]:
        return self.stats.get()

    def reset_stats(self) -> None:
        """Clear all running statistics.  Energy domain state is kept."""
        self.stats.reset()

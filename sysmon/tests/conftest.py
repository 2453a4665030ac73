"""
Shared test fixtures for sysmon tests.

Provides environment isolation for MonitorSettings and a builder for fake
sysfs trees under ``tmp_path``.

CHANGELOG:
- 2026-10-19: Build thermal zones, hwmon power channels and raw bytes
- 2026-10-13: Initial creation

TODO:
- None
"""

from __future__ import annotations

from pathlib import Path

import pytest

# All MonitorSettings environment variable names, used for cleanup.
_ALL_SYSMON_ENV_VARS = (
    "SYSMON_SYSFS_ROOT",
    "SYSMON_CPU_SENSOR_DRIVERS",
    "SYSMON_MEMORY_SENSOR_DRIVER",
    "SYSMON_MAX_TEMP_CHANNELS",
    "SYSMON_MEMORY_TEMP_CHANNELS",
    "SYSMON_SAMPLE_INTERVAL_S",
    "SYSMON_TRACK_STATS",
    "SYSMON_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_sysmon_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all sysmon env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_SYSMON_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeSysfs:
    """Writes sysfs-style attribute files under a temporary root."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, relative: str, text: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text + "\n")
        return path

    def write_bytes(self, relative: str, data: bytes) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def add_cpu(self, index: int, khz: str) -> None:
        self.write(f"devices/system/cpu/cpu{index}/cpufreq/scaling_cur_freq", khz)

    def add_hwmon(
        self,
        hwmon: int,
        name: str,
        temps: dict[int, tuple[str, str | None]] | None = None,
        fans: dict[int, tuple[str, str | None]] | None = None,
        powers: dict[int, tuple[str, str | None]] | None = None,
    ) -> None:
        base = f"class/hwmon/hwmon{hwmon}"
        self.write(f"{base}/name", name)
        for index, (raw, label) in (temps or {}).items():
            self.write(f"{base}/temp{index}_input", raw)
            if label is not None:
                self.write(f"{base}/temp{index}_label", label)
        for index, (raw, label) in (fans or {}).items():
            self.write(f"{base}/fan{index}_input", raw)
            if label is not None:
                self.write(f"{base}/fan{index}_label", label)
        for index, (raw, label) in (powers or {}).items():
            self.write(f"{base}/power{index}_input", raw)
            if label is not None:
                self.write(f"{base}/power{index}_label", label)

    def add_thermal_zone(self, zone: int, temp: str, zone_type: str | None = None) -> None:
        base = f"class/thermal/thermal_zone{zone}"
        self.write(f"{base}/temp", temp)
        if zone_type is not None:
            self.write(f"{base}/type", zone_type)

    def add_rapl(self, zone: int, name: str, energy_uj: str) -> None:
        base = f"class/powercap/intel-rapl/intel-rapl:{zone}"
        self.write(f"{base}/name", name)
        self.write(f"{base}/energy_uj", energy_uj)

    def add_supply(self, name: str, supply_type: str, **attrs: str) -> None:
        base = f"class/power_supply/{name}"
        self.write(f"{base}/type", supply_type)
        for attr, value in attrs.items():
            self.write(f"{base}/{attr}", value)


@pytest.fixture()
def fake_sysfs(tmp_path: Path) -> FakeSysfs:
    """Empty fake sysfs tree rooted at ``tmp_path / "sys"``."""
    root = tmp_path / "sys"
    root.mkdir()
    return FakeSysfs(root)

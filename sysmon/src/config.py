"""
Monitor configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every variable is prefixed with ``SYSMON_`` and may also come from a
``.env`` file in the working directory.

CHANGELOG:
- 2026-10-16: Validate sample interval against the power plausibility window
- 2026-10-13: Initial creation

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sysmon.src.energy import MAX_TIME_DELTA_US, MIN_TIME_DELTA_US

DEFAULT_CPU_SENSOR_DRIVERS: list[str] = ["coretemp", "k10temp", "zenpower", "x86_pkg_temp"]
MAX_TEMP_CHANNELS: int = 30


class MonitorSettings(BaseSettings):
    """Telemetry monitor configuration.

    All values have defaults suitable for a stock Linux host.

    Attributes:
        sysfs_root: Mount point of sysfs.
        cpu_sensor_drivers: hwmon driver names whose temperature channels
            are reported as CPU temperatures (substring match).
        memory_sensor_driver: hwmon driver name of memory-module sensors.
        max_temp_channels: Highest ``tempN`` index probed on CPU chips.
        memory_temp_channels: Highest ``tempN`` index probed on memory chips.
        sample_interval_s: Seconds between samples when driven by the CLI.
        track_stats: Feed every sample into the statistics tracker.
        log_level: Root log level name.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYSMON_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    sysfs_root: str = "/sys"
    cpu_sensor_drivers: list[str] = DEFAULT_CPU_SENSOR_DRIVERS
    memory_sensor_driver: str = "spd5118"
    max_temp_channels: int = MAX_TEMP_CHANNELS
    memory_temp_channels: int = 10
    sample_interval_s: float = 1.0
    track_stats: bool = True
    log_level: str = "INFO"

    @field_validator("cpu_sensor_drivers")
    @classmethod
    def cpu_sensor_drivers_must_not_be_empty(cls, v: list[str]) -> list[str]:
        """Reject an empty driver list or blank driver names."""
        if not v or any(not name.strip() for name in v):
            raise ValueError("SYSMON_CPU_SENSOR_DRIVERS must list at least one driver name")
        return v

    @field_validator("max_temp_channels")
    @classmethod
    def max_temp_channels_must_be_valid(cls, v: int) -> int:
        """Validate the probed channel count is between 1 and 30."""
        if v < 1 or v > MAX_TEMP_CHANNELS:
            raise ValueError(
                f"SYSMON_MAX_TEMP_CHANNELS must be between 1 and {MAX_TEMP_CHANNELS}"
            )
        return v

    @field_validator("memory_temp_channels")
    @classmethod
    def memory_temp_channels_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("SYSMON_MEMORY_TEMP_CHANNELS must be >= 1")
        return v

    @field_validator("sample_interval_s")
    @classmethod
    def sample_interval_must_fit_power_window(cls, v: float) -> float:
        """Validate the interval lies inside the accepted power sample window.

        Readings further apart than 10 s, or closer than 0.1 s, never yield
        a power value, so such an interval would disable power reporting.
        """
        low = MIN_TIME_DELTA_US / 1_000_000
        high = MAX_TIME_DELTA_US / 1_000_000
        if not low <= v < high:
            raise ValueError(f"SYSMON_SAMPLE_INTERVAL_S must be >= {low} and < {high}")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and upper-case the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"SYSMON_LOG_LEVEL must be a logging level name (got: '{v}')")
        return level

"""
Sysfs discovery and raw reads for the telemetry engine.

Walks the Linux sysfs tree and returns raw attribute text without
interpreting it.  Unit conversion and validation happen downstream in the
normalizer, the energy differentiator and the battery estimator.

Sources:
    - ``devices/system/cpu/cpuN/cpufreq/scaling_cur_freq``   (kHz)
    - ``class/hwmon/hwmonN/{name,tempN_input,tempN_label}``  (millidegrees C)
    - ``class/hwmon/hwmonN/{fanN_input,fanN_label}``          (RPM)
    - ``class/hwmon/hwmonN/{powerN_input,powerN_label}``      (uW)
    - ``class/thermal/thermal_zoneN/{temp,type}``            (millidegrees C)
    - ``class/powercap/intel-rapl/intel-rapl:N/{name,energy_uj}`` (uJ)
    - ``class/power_supply/*/{type,status,online,...}``       (micro-units)

Missing, unreadable or undecodable files are treated as absent.  Neither
``OSError`` nor ``UnicodeDecodeError`` escapes this module.

CHANGELOG:
- 2026-10-19: Read hwmon power channels and thermal zones
- 2026-10-16: Read fan tachometers
- 2026-10-13: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from sysmon.src.battery import (
    FIELD_AC_ONLINE,
    FIELD_CAPACITY,
    FIELD_STATUS,
    NUMERIC_FIELDS,
)

logger = logging.getLogger(__name__)

_CPU_DIR_RE = re.compile(r"^cpu(\d+)$")
_HWMON_PREFIX = "hwmon"
_RAPL_PREFIX = "intel-rapl:"
_THERMAL_CHIP = "thermal"

SUPPLY_TYPE_BATTERY = "Battery"
SUPPLY_TYPE_MAINS = "Mains"


@dataclass(frozen=True, slots=True)
class RawChannel:
    """One indexed hwmon channel or thermal zone as read from sysfs.

    Attributes:
        chip: Driver name from the hwmon ``name`` file (e.g. ``"coretemp"``),
            or ``"thermal"`` for thermal zones.
        index: Channel number N from ``tempN_input`` / ``fanN_input`` /
            ``powerN_input``, or the zone number of ``thermal_zoneN``.
        raw: Unparsed text of the ``*_input`` (or zone ``temp``) file.
        label: Text of the ``*_label`` (or zone ``type``) file, or ``None``
            if absent.
    """

    chip: str
    index: int
    raw: str
    label: str | None = None


def read_text(path: Path) -> str | None:
    """Read and strip a sysfs attribute, returning ``None`` if unavailable."""
    try:
        text = path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError):
        logger.debug("Unreadable sysfs attribute: %s", path)
        return None
    return text or None


def _sorted_entries(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError:
        logger.debug("Unreadable sysfs directory: %s", directory)
        return []


class SysfsReader:
    """Raw reader over a sysfs tree.

    Args:
        root: Mount point of sysfs.  Tests point this at a fake tree.
    """

    def __init__(self, root: str | Path = "/sys") -> None:
        self.root = Path(root)

    # -- CPU --------------------------------------------------------------

    def read_cpu_frequencies(self) -> dict[str, str]:
        """Return ``{core_id: raw_khz}`` for every core exposing cpufreq."""
        result: dict[str, str] = {}
        for cpu_dir in _sorted_entries(self.root / "devices" / "system" / "cpu"):
            if not _CPU_DIR_RE.match(cpu_dir.name):
                continue
            raw = read_text(cpu_dir / "cpufreq" / "scaling_cur_freq")
            if raw is not None:
                result[cpu_dir.name] = raw
        return result

    # -- hwmon ------------------------------------------------------------

    def _hwmon_chips(self) -> Iterator[tuple[Path, str]]:
        for hwmon_dir in _sorted_entries(self.root / "class" / "hwmon"):
            if not hwmon_dir.name.startswith(_HWMON_PREFIX):
                continue
            name = read_text(hwmon_dir / "name")
            if name is not None:
                yield hwmon_dir, name

    def read_temperature_channels(
        self,
        drivers: Sequence[str],
        max_channels: int,
    ) -> list[RawChannel]:
        """Return temperature channels of every chip matching *drivers*.

        A chip matches when any entry of *drivers* is a (case-sensitive)
        substring of its ``name``.  Channels ``temp1`` .. ``temp{max_channels}``
        are probed; gaps are skipped.
        """
        channels: list[RawChannel] = []
        for hwmon_dir, name in self._hwmon_chips():
            if not any(driver in name for driver in drivers):
                continue
            for index in range(1, max_channels + 1):
                raw = read_text(hwmon_dir / f"temp{index}_input")
                if raw is None:
                    continue
                channels.append(
                    RawChannel(
                        chip=name,
                        index=index,
                        raw=raw,
                        label=read_text(hwmon_dir / f"temp{index}_label"),
                    )
                )
        return channels

    def _consecutive_channels(self, prefix: str) -> list[RawChannel]:
        """Walk ``{prefix}1_input``, ``{prefix}2_input``, ... on every chip.

        Stops at the first missing index of each chip.
        """
        channels: list[RawChannel] = []
        for hwmon_dir, name in self._hwmon_chips():
            index = 1
            while (raw := read_text(hwmon_dir / f"{prefix}{index}_input")) is not None:
                channels.append(
                    RawChannel(
                        chip=name,
                        index=index,
                        raw=raw,
                        label=read_text(hwmon_dir / f"{prefix}{index}_label"),
                    )
                )
                index += 1
        return channels

    def read_fan_channels(self) -> list[RawChannel]:
        """Return consecutive ``fanN_input`` channels of every hwmon chip."""
        return self._consecutive_channels("fan")

    def read_power_channels(self) -> list[RawChannel]:
        """Return consecutive ``powerN_input`` channels (uW) of every hwmon chip."""
        return self._consecutive_channels("power")

    # -- thermal ----------------------------------------------------------

    def read_thermal_zones(self) -> list[RawChannel]:
        """Return ``thermal_zoneN`` temperatures, stopping at the first gap.

        The zone ``type`` is reported as the channel label.
        """
        channels: list[RawChannel] = []
        thermal_root = self.root / "class" / "thermal"
        index = 0
        while (raw := read_text(thermal_root / f"thermal_zone{index}" / "temp")) is not None:
            channels.append(
                RawChannel(
                    chip=_THERMAL_CHIP,
                    index=index,
                    raw=raw,
                    label=read_text(thermal_root / f"thermal_zone{index}" / "type"),
                )
            )
            index += 1
        return channels

    # -- powercap ---------------------------------------------------------

    def read_energy_counters(self) -> list[tuple[str, str]]:
        """Return ``(domain_name, raw_energy_uj)`` for each RAPL domain.

        Domains whose name or counter cannot be read are skipped.
        """
        counters: list[tuple[str, str]] = []
        rapl_root = self.root / "class" / "powercap" / "intel-rapl"
        for domain_dir in _sorted_entries(rapl_root):
            if not domain_dir.name.startswith(_RAPL_PREFIX):
                continue
            name = read_text(domain_dir / "name")
            energy = read_text(domain_dir / "energy_uj")
            if name is None or energy is None:
                logger.debug("Skipping RAPL domain %s: unreadable", domain_dir.name)
                continue
            counters.append((name, energy))
        return counters

    # -- power_supply -----------------------------------------------------

    def _supplies_of_type(self, supply_type: str) -> Iterator[Path]:
        for supply_dir in _sorted_entries(self.root / "class" / "power_supply"):
            if read_text(supply_dir / "type") == supply_type:
                yield supply_dir

    def read_battery(self) -> dict[str, str | None] | None:
        """Return raw battery fields, or ``None`` if no battery exists.

        The first supply of type ``Battery`` is used.  AC presence is the
        ``online`` flag of the first supply of type ``Mains``.
        """
        battery_dir = next(self._supplies_of_type(SUPPLY_TYPE_BATTERY), None)
        if battery_dir is None:
            return None

        raw: dict[str, str | None] = {
            FIELD_STATUS: read_text(battery_dir / "status"),
            FIELD_CAPACITY: read_text(battery_dir / "capacity"),
        }
        for field_name in NUMERIC_FIELDS:
            raw[field_name] = read_text(battery_dir / field_name)

        mains_dir = next(self._supplies_of_type(SUPPLY_TYPE_MAINS), None)
        raw[FIELD_AC_ONLINE] = (
            read_text(mains_dir / "online") if mains_dir is not None else None
        )
        return raw

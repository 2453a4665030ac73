"""
Running statistics per metric key.

The tracker keeps min / max / sum / count and the current and last valid
value for each key the caller updates.  Values are filtered before they
touch any state:

- NaN and +/-infinity are rejected for every key.
- For keys containing ``"power"``, values outside ``[0, 1000)`` watts are
  rejected, mirroring the energy differentiator's own plausibility bound.

Rejected values are silent no-ops.  The average is always computed over
accepted values only.

Keys are arbitrary caller-supplied strings and records are never evicted;
callers are expected to use a stable, finite set of metric names.

CHANGELOG:
- 2026-10-15: Track last valid value per key
- 2026-10-13: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sysmon.src.models import StatSummary

logger = logging.getLogger(__name__)

POWER_KEY_MARKER: str = "power"
"""Keys containing this substring get the power plausibility guard."""

MAX_PLAUSIBLE_POWER_W: float = 1000.0


@dataclass(slots=True)
class StatRecord:
    """Accumulated statistics for a single metric key."""

    min: float
    max: float
    sum: float = 0.0
    current_value: float = 0.0
    last_valid_value: float = 0.0
    count_samples: int = 0
    valid_count_samples: int = 0

    @property
    def avg(self) -> float | None:
        if self.valid_count_samples == 0:
            return None
        return self.sum / self.valid_count_samples

    def to_summary(self) -> StatSummary:
        return StatSummary(
            min=self.min,
            max=self.max,
            avg=self.avg,
            current=self.current_value,
        )


def is_valid_sample(key: str, value: float) -> bool:
    """Return True if *value* may be recorded under *key*."""
    if not math.isfinite(value):
        return False
    if POWER_KEY_MARKER in key and not 0.0 <= value < MAX_PLAUSIBLE_POWER_W:
        return False
    return True


class StatisticsTracker:
    """Min / max / average / last-valid tracking keyed by metric name.

    Not thread-safe: a host driving the tracker from several threads must
    hold its own lock around every call.
    """

    def __init__(self) -> None:
        self._records: dict[str, StatRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def update(self, key: str, value: float) -> None:
        """Record *value* for *key* unless it fails validation."""
        if not is_valid_sample(key, value):
            logger.debug("Stat '%s': rejected value %r", key, value)
            return

        record = self._records.get(key)
        if record is None:
            record = StatRecord(min=value, max=value)
            self._records[key] = record
        else:
            if value < record.min:
                record.min = value
            if value > record.max:
                record.max = value

        record.sum += value
        record.count_samples += 1
        record.valid_count_samples += 1
        record.current_value = value
        record.last_valid_value = value

    def get(self) -> dict[str, StatSummary]:
        """Return a snapshot of ``{key: StatSummary}`` for every key."""
        return {key: record.to_summary() for key, record in self._records.items()}

    def record(self, key: str) -> StatRecord | None:
        """Return the raw record for *key*, or ``None`` if unseen."""
        return self._records.get(key)

    def reset(self) -> None:
        """Drop the statistics for every key, including last valid values."""
        self._records = {}
        logger.info("Statistics reset")

    def has_last_valid(self, key: str) -> bool:
        """Return True if *key* has an accepted value since the last reset."""
        return key in self._records

    def get_last_valid(self, key: str) -> float:
        """Last accepted value for *key*, or ``0.0`` when there is none."""
        record = self._records.get(key)
        if record is None:
            return 0.0
        return record.last_valid_value

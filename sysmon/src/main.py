"""
Command-line sampler for the sysmon telemetry engine.

Loads :class:`~sysmon.src.config.MonitorSettings`, configures structured
JSON logging on stderr, takes a fixed number of samples at the configured
interval and writes each :class:`~sysmon.src.models.TelemetrySnapshot` as
one JSON line on stdout.  With ``--summary`` the final running statistics are
also written as a CSV file.

Usage:
    python -m sysmon.src.main --count 5
    python -m sysmon.src.main --count 10 --interval 2 --no-stats
    python -m sysmon.src.main --count 60 --summary summary.csv

Power metrics need two readings of each energy counter, so the first
snapshot never contains power values.

CHANGELOG:
- 2026-10-19: Add --summary CSV statistics export
- 2026-10-16: Initial creation

TODO:
- None
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

from sysmon.src.config import MonitorSettings
from sysmon.src.models import StatSummary
from sysmon.src.monitor import TelemetryMonitor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Install the JSON formatter on the root logger, writing to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def log_config_summary(settings: MonitorSettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "sysmon starting with config: "
        "sysfs_root=%s, cpu_sensor_drivers=%s, memory_sensor_driver=%s, "
        "max_temp_channels=%s, memory_temp_channels=%s, "
        "sample_interval_s=%s, track_stats=%s, log_level=%s",
        settings.sysfs_root,
        ",".join(settings.cpu_sensor_drivers),
        settings.memory_sensor_driver,
        settings.max_temp_channels,
        settings.memory_temp_channels,
        settings.sample_interval_s,
        settings.track_stats,
        settings.log_level,
    )


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def run_samples(
    monitor: TelemetryMonitor,
    *,
    count: int,
    interval_s: float,
    out: TextIO,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Take *count* samples, *interval_s* apart, writing JSON lines to *out*.

    Returns:
        Number of snapshots written.
    """
    written = 0
    for i in range(count):
        if i > 0:
            sleep(interval_s)
        snapshot = monitor.sample()
        out.write(snapshot.model_dump_json() + "\n")
        out.flush()
        written += 1
    logger.info("Wrote %d snapshot(s)", written)
    return written


# ---------------------------------------------------------------------------
# Statistics summary
# ---------------------------------------------------------------------------


SUMMARY_HEADER: tuple[str, ...] = ("metric", "min", "max", "avg", "current")


def _format_stat(value: float | None) -> str:
    return "" if value is None else f"{value:.2f}"


def write_summary(stats: dict[str, StatSummary], path: Path) -> None:
    """Write one ``metric,min,max,avg,current`` CSV row per statistics key.

    Values are rounded to two decimals; an absent average is left empty.
    """
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerow(SUMMARY_HEADER)
        for key, summary in stats.items():
            writer.writerow(
                [
                    key,
                    _format_stat(summary.min),
                    _format_stat(summary.max),
                    _format_stat(summary.avg),
                    _format_stat(summary.current),
                ]
            )
    logger.info("Summary written to: %s", path)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysmon",
        description="Sample hardware telemetry from sysfs and print JSON snapshots.",
    )
    parser.add_argument(
        "--count",
        type=_positive_int,
        default=2,
        help="Number of samples to take (default: 2)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between samples (default: SYSMON_SAMPLE_INTERVAL_S)",
    )
    parser.add_argument(
        "--no-stats",
        action="store_true",
        help="Do not track running statistics",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write a CSV statistics summary to PATH after sampling",
    )
    return parser


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous entrypoint for the sampler CLI."""
    args = build_parser().parse_args(argv)

    overrides: dict[str, object] = {}
    if args.interval is not None:
        overrides["sample_interval_s"] = args.interval
    if args.no_stats:
        overrides["track_stats"] = False
    settings = MonitorSettings(**overrides)

    configure_logging(settings.log_level)
    log_config_summary(settings)

    monitor = TelemetryMonitor(settings)
    run_samples(
        monitor,
        count=args.count,
        interval_s=settings.sample_interval_s,
        out=sys.stdout,
        sleep=time.sleep,
    )
    if args.summary is not None:
        write_summary(monitor.get_stats(), args.summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())

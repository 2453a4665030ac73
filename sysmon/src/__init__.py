"""
Hardware telemetry engine for the sysmon host monitor.

Samples CPU frequency, temperature sensors, RAPL energy counters and battery
state from the Linux sysfs tree, converts raw register units into calibrated
physical quantities, and maintains running statistics per metric key.

CHANGELOG:
- 2026-10-12: Initial creation

TODO:
- None
"""

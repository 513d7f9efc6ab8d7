"""Live process information for reports."""

import os
import platform
import sys
import time

import psutil

from telemetripy.core.capture import current_process, memory_snapshot
from telemetripy.core.models import SystemInfo


def cpu_count() -> int:
    """Number of logical CPUs, at least 1."""
    return psutil.cpu_count(logical=True) or 1


def collect_system_info() -> SystemInfo:
    """Collect uptime, memory and CPU utilization of the current process.

    CPU utilization is the process-lifetime average: total CPU time divided
    by uptime divided by the number of cores.

    Raises:
        psutil.Error: If the process cannot be inspected.
    """
    process = current_process()
    uptime = max(time.time() - process.create_time(), 0.0)
    cpu_utilization = None
    if uptime > 0:
        times = process.cpu_times()
        cpu_utilization = (times.user + times.system) / uptime / cpu_count()
    return SystemInfo(
        python_version=platform.python_version(),
        platform=sys.platform,
        pid=os.getpid(),
        uptime_seconds=round(uptime),
        memory=memory_snapshot(),
        cpu_utilization=cpu_utilization,
    )

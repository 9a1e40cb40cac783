"""Stateless service for running distribution cycles."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from ...scheduler.orchestrator import CycleReport
from ...services import Services
from ..core.types import Failure, Result, Success

_logger = logging.getLogger("scheduler")


async def run_cycle(services: Services, scheduled: bool = False) -> Result[CycleReport]:
    """Run one cycle.

    On a manual run, Ctrl+C before publishing starts cancels the cycle; once
    platform attempts have begun they run to completion.
    """
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    handles_signal = not scheduled and sys.platform != "win32"
    if handles_signal:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)

    _logger.info(f"{'Scheduled' if scheduled else 'Manual'} cycle started")
    try:
        report = await services.scheduler.run_cycle(cancel_event=cancel_event)
    finally:
        if handles_signal:
            loop.remove_signal_handler(signal.SIGINT)

    if report is None:
        return Failure("A cycle is already running")
    return Success(report)


async def process_queue(services: Services) -> Result[list[CycleReport]]:
    reports: Optional[list[CycleReport]] = await services.scheduler.process_queue()
    if reports is None:
        return Failure("A cycle is already running")
    return Success(reports)

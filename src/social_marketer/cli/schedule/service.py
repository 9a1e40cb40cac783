"""Stateless service for the daily trigger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from ...errors import TriggerError
from ...scheduler.trigger import InstalledTrigger
from ...services import Services
from ..core.types import Failure, Result, Success


@dataclass(frozen=True)
class ScheduleStatus:
    hour: int
    minute: int
    installed: Optional[InstalledTrigger]
    current: bool


@dataclass(frozen=True)
class ScheduleChange:
    hour: int
    minute: int
    reinstalled: bool


def set_schedule(services: Services, hour: int, minute: int) -> Result[ScheduleChange]:
    """Store a new time; an installed trigger is replaced, never duplicated."""
    try:
        reinstalled = services.triggers.update_schedule(hour, minute)
    except ValidationError:
        return Failure("Hour must be 0-23 and minute 0-59")
    except TriggerError as e:
        return Failure(e.user_message)
    return Success(ScheduleChange(hour, minute, reinstalled))


def install_trigger(services: Services) -> Result[ScheduleStatus]:
    try:
        services.triggers.install()
    except TriggerError as e:
        return Failure(e.user_message)
    return Success(get_status(services))


def uninstall_trigger(services: Services) -> Result[None]:
    try:
        services.triggers.uninstall()
    except TriggerError as e:
        return Failure(e.user_message)
    return Success(None)


def get_status(services: Services) -> ScheduleStatus:
    manager = services.triggers
    installed = manager.status()
    return ScheduleStatus(
        hour=manager.schedule.hour,
        minute=manager.schedule.minute,
        installed=installed,
        current=installed == manager.desired,
    )

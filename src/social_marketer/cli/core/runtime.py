"""Service construction and argument parsing shared by commands."""

from __future__ import annotations

import typer

from ...platforms.types import PlatformType
from ...services import Services, build_services


def get_services() -> Services:
    """Build the application services from the environment and config file."""
    return build_services()


def parse_platform(name: str) -> PlatformType:
    """Parse a platform argument, raising a typer error on unknown names."""
    try:
        return PlatformType.parse(name)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None

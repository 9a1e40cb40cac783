"""Daily OS trigger that runs one scheduled cycle.

The scheduler only supplies the time and the command; installing and
removing the trigger is delegated to the OS mechanism (launchd on macOS,
cron elsewhere). Installing always replaces the previous trigger, so a time
change never leaves two triggers active.
"""

from __future__ import annotations

import logging
import plistlib
import shlex
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

from ..config import ScheduleConfig, save_schedule
from ..errors import TriggerError

_logger = logging.getLogger("scheduler")

LAUNCHD_LABEL = "com.wisdombook.SocialMarketer"
CRON_TAG = "# social-marketer"

Runner = Callable[..., subprocess.CompletedProcess]


@dataclass(frozen=True)
class InstalledTrigger:
    """Trigger as currently registered with the OS."""

    hour: int
    minute: int
    command: tuple[str, ...]


def default_command() -> list[str]:
    """Command the trigger runs: ``marketer run --scheduled``."""
    executable = shutil.which("marketer")
    if executable:
        return [executable, "run", "--scheduled"]
    return [sys.executable, "-m", "social_marketer", "run", "--scheduled"]


class TriggerInstaller(ABC):
    """Registers one daily trigger with the OS."""

    def __init__(self, runner: Runner = subprocess.run):
        self._runner = runner

    @abstractmethod
    def install(self, hour: int, minute: int, command: Sequence[str]) -> None:
        """Install the trigger, replacing any previous one."""
        ...

    @abstractmethod
    def uninstall(self) -> None:
        ...

    @abstractmethod
    def installed_schedule(self) -> Optional[InstalledTrigger]:
        """Registered trigger, or None if absent or unreadable."""
        ...

    @property
    @abstractmethod
    def is_installed(self) -> bool:
        ...

    def _run(self, args: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        try:
            return self._runner(args, capture_output=True, text=True, timeout=30, **kwargs)
        except (OSError, subprocess.SubprocessError) as e:
            raise TriggerError(f"{args[0]} failed: {e}") from e


class LaunchdTriggerInstaller(TriggerInstaller):
    """Per-user launch agent with a StartCalendarInterval."""

    def __init__(
        self,
        agents_dir: Optional[Path] = None,
        label: str = LAUNCHD_LABEL,
        runner: Runner = subprocess.run,
    ):
        super().__init__(runner)
        self.agents_dir = agents_dir or Path.home() / "Library" / "LaunchAgents"
        self.label = label

    @property
    def plist_path(self) -> Path:
        return self.agents_dir / f"{self.label}.plist"

    @property
    def is_installed(self) -> bool:
        return self.plist_path.exists()

    def build_plist(self, hour: int, minute: int, command: Sequence[str]) -> dict[str, Any]:
        return {
            "Label": self.label,
            "ProgramArguments": list(command),
            "StartCalendarInterval": {"Hour": hour, "Minute": minute},
            "RunAtLoad": False,
            "KeepAlive": False,
            "StandardOutPath": f"/tmp/{self.label}.out.log",
            "StandardErrorPath": f"/tmp/{self.label}.err.log",
            "EnvironmentVariables": {"PATH": "/usr/local/bin:/usr/bin:/bin"},
            "WorkingDirectory": "/tmp",
            "ProcessType": "Background",
            "Nice": 10,
        }

    def install(self, hour: int, minute: int, command: Sequence[str]) -> None:
        self.agents_dir.mkdir(parents=True, exist_ok=True)
        if self.is_installed:
            self._run(["launchctl", "unload", str(self.plist_path)])
            self.plist_path.unlink()

        with open(self.plist_path, "wb") as f:
            plistlib.dump(self.build_plist(hour, minute, command), f)

        result = self._run(["launchctl", "load", str(self.plist_path)])
        if result.returncode != 0:
            raise TriggerError(f"launchctl load failed: {result.stderr.strip()}")
        _logger.info(f"Launch agent installed for {hour:02d}:{minute:02d}")

    def uninstall(self) -> None:
        if not self.is_installed:
            return
        self._run(["launchctl", "unload", str(self.plist_path)])
        self.plist_path.unlink()
        _logger.info("Launch agent unloaded and removed")

    def installed_schedule(self) -> Optional[InstalledTrigger]:
        if not self.is_installed:
            return None
        try:
            with open(self.plist_path, "rb") as f:
                plist = plistlib.load(f)
            interval = plist["StartCalendarInterval"]
            return InstalledTrigger(
                hour=int(interval["Hour"]),
                minute=int(interval["Minute"]),
                command=tuple(plist["ProgramArguments"]),
            )
        except (plistlib.InvalidFileException, KeyError, TypeError, ValueError) as e:
            _logger.warning(f"Launch agent plist unreadable: {e}")
            return None


class CrontabTriggerInstaller(TriggerInstaller):
    """One tagged line in the user's crontab."""

    def __init__(self, tag: str = CRON_TAG, runner: Runner = subprocess.run):
        super().__init__(runner)
        self.tag = tag

    def _read_lines(self) -> list[str]:
        result = self._run(["crontab", "-l"])
        if result.returncode != 0:
            # "no crontab for user"
            return []
        return result.stdout.splitlines()

    def _write_lines(self, lines: list[str]) -> None:
        text = "\n".join(lines) + "\n" if lines else ""
        result = self._run(["crontab", "-"], input=text)
        if result.returncode != 0:
            raise TriggerError(f"crontab update failed: {result.stderr.strip()}")

    def _tagged(self, line: str) -> bool:
        return line.rstrip().endswith(self.tag)

    def build_line(self, hour: int, minute: int, command: Sequence[str]) -> str:
        return f"{minute} {hour} * * * {shlex.join(command)} {self.tag}"

    @property
    def is_installed(self) -> bool:
        return any(self._tagged(line) for line in self._read_lines())

    def install(self, hour: int, minute: int, command: Sequence[str]) -> None:
        lines = [line for line in self._read_lines() if not self._tagged(line)]
        lines.append(self.build_line(hour, minute, command))
        self._write_lines(lines)
        _logger.info(f"Crontab entry installed for {hour:02d}:{minute:02d}")

    def uninstall(self) -> None:
        lines = self._read_lines()
        kept = [line for line in lines if not self._tagged(line)]
        if len(kept) == len(lines):
            return
        self._write_lines(kept)
        _logger.info("Crontab entry removed")

    def installed_schedule(self) -> Optional[InstalledTrigger]:
        for line in self._read_lines():
            if not self._tagged(line):
                continue
            fields = line.rstrip()[: -len(self.tag)].split(maxsplit=5)
            try:
                return InstalledTrigger(
                    hour=int(fields[1]),
                    minute=int(fields[0]),
                    command=tuple(shlex.split(fields[5])),
                )
            except (IndexError, ValueError) as e:
                _logger.warning(f"Crontab entry unreadable: {e}")
                return None
        return None


def default_installer() -> TriggerInstaller:
    if sys.platform == "darwin":
        return LaunchdTriggerInstaller()
    return CrontabTriggerInstaller()


class TriggerManager:
    """Keeps the installed trigger in line with the configured time."""

    def __init__(
        self,
        installer: TriggerInstaller,
        schedule: Optional[ScheduleConfig] = None,
        command: Optional[Sequence[str]] = None,
        config_path: Optional[Path] = None,
    ):
        self.installer = installer
        self.schedule = schedule or ScheduleConfig()
        self.command = tuple(command) if command else tuple(default_command())
        self.config_path = config_path

    @property
    def desired(self) -> InstalledTrigger:
        return InstalledTrigger(self.schedule.hour, self.schedule.minute, self.command)

    def status(self) -> Optional[InstalledTrigger]:
        return self.installer.installed_schedule()

    def install(self) -> None:
        self.installer.install(self.schedule.hour, self.schedule.minute, self.command)

    def uninstall(self) -> None:
        self.installer.uninstall()

    def update_schedule(self, hour: int, minute: int) -> bool:
        """Store a new time and reinstall the trigger if it is installed.

        Returns:
            True if the trigger was reinstalled.

        Raises:
            pydantic.ValidationError: Hour or minute out of range.
        """
        self.schedule = ScheduleConfig(hour=hour, minute=minute)
        if self.config_path is not None:
            save_schedule(self.config_path, hour, minute)
        _logger.info(f"Schedule set to {hour:02d}:{minute:02d}")
        return self.ensure_current()

    def ensure_current(self) -> bool:
        """Reinstall an installed trigger whose time or command is outdated.

        A trigger that is not installed is left alone.
        """
        if not self.installer.is_installed:
            return False
        if self.installer.installed_schedule() == self.desired:
            _logger.debug("Trigger is current")
            return False
        _logger.info("Trigger outdated; reinstalling")
        self.install()
        return True

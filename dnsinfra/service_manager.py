"""Service management through the platform's service control programs."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from dnsinfra.installer import Installer

_logger = logging.getLogger(__name__)


class ServiceCommandError(OSError):
    """A service command ran but exited unsuccessfully."""


@dataclass
class ServiceCommand:
    """A program and its arguments."""

    program: Union[str, "os.PathLike[str]"]
    args: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return " ".join([str(Path(self.program)), *map(str, self.args)])

    def output(self) -> subprocess.CompletedProcess:
        """Run the command with no input, capturing its output."""
        _logger.debug("># %s", self)
        return subprocess.run(
            [os.fspath(self.program), *map(str, self.args)],
            stdin=subprocess.DEVNULL,
            capture_output=True,
            check=False,
        )

    def spawn(self) -> None:
        """Run the command; raise ServiceCommandError if it fails."""
        output = self.output()
        if output.returncode == 0:
            return
        message = _text(output.stderr) or _text(output.stdout) or "Failed"
        _logger.error("%s", message)
        raise ServiceCommandError(message)


def _text(data: bytes | None) -> str | None:
    if not data:
        return None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return text if text.strip() else None


@dataclass
class ServiceCommands:
    start: ServiceCommand
    stop: ServiceCommand
    install: ServiceCommand | None = None
    uninstall: ServiceCommand | None = None
    status: ServiceCommand | None = None
    restart: ServiceCommand | None = None


@dataclass
class ServiceDefinition:
    name: str
    installer: Installer
    commands: ServiceCommands


class ServiceState(Enum):
    RUNNING = "running"
    DEAD = "dead"
    UNKNOWN = "unknown"


@dataclass
class ServiceStatus:
    """The state reported by the status command, with its output if it ran."""

    state: ServiceState
    output: subprocess.CompletedProcess | None = None

    @property
    def is_running(self) -> bool:
        return self.state is ServiceState.RUNNING

    @property
    def is_dead(self) -> bool:
        return self.state is ServiceState.DEAD


class ServiceManager:
    """Installs, starts, stops and queries one service."""

    def __init__(self, definition: ServiceDefinition) -> None:
        self.definition = definition

    def _try_stop_quietly(self) -> None:
        try:
            self.try_stop()
        except OSError:
            pass

    def _state(self) -> ServiceState | None:
        try:
            return self.status().state
        except OSError:
            return None

    def install(self) -> None:
        self._try_stop_quietly()
        self.definition.installer.install()
        if self.definition.commands.install is not None:
            self.definition.commands.install.spawn()
        _logger.info("Service %s successfully installed", self.definition.name)
        self.start()

    def uninstall(self, purge: bool = False) -> None:
        self._try_stop_quietly()
        if self.definition.commands.uninstall is not None:
            self.definition.commands.uninstall.spawn()
        self.definition.installer.uninstall(purge)
        _logger.info("Service %s successfully uninstalled", self.definition.name)

    def start(self) -> None:
        if self._state() is not ServiceState.RUNNING:
            self.definition.commands.start.spawn()
            _logger.info("Successfully started service %s", self.definition.name)
        else:
            _logger.info("Service %s already started", self.definition.name)

    def stop(self) -> None:
        self.try_stop()
        _logger.info("Successfully stopped service %s", self.definition.name)

    def try_stop(self) -> None:
        """Run the stop command unless the service is known to be dead."""
        if self._state() is not ServiceState.DEAD:
            self.definition.commands.stop.spawn()

    def restart(self) -> None:
        restart = self.definition.commands.restart
        if restart is not None:
            restart.spawn()
            _logger.info("Successfully restarted service %s", self.definition.name)
        else:
            self._try_stop_quietly()
            time.sleep(0.5)
            self.start()

    def status(self) -> ServiceStatus:
        cmd = self.definition.commands.status
        if cmd is None:
            return ServiceStatus(ServiceState.UNKNOWN)
        output = cmd.output()
        state = ServiceState.RUNNING if output.returncode == 0 else ServiceState.DEAD
        return ServiceStatus(state, output)
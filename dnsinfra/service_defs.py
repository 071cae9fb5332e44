"""Service definitions for systemd, init.d, launchd, Homebrew and Windows."""

from __future__ import annotations

import shutil
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Union

from dnsinfra import os_release
from dnsinfra.installer import (
    InstallItem,
    Installer,
    InstallStrategy,
    UninstallStrategy,
)
from dnsinfra.service_manager import (
    ServiceCommand,
    ServiceCommands,
    ServiceDefinition,
    ServiceManager,
)
from dnsinfra.shell_escape import escape

NAME = "SmartDNS"
SERVICE_NAME = "smartdns-rs"

LINUX_BIN_PATH = "/usr/sbin/smartdns"
LINUX_CONF_DIR = "/etc/smartdns"
LINUX_CONF_PATH = "/etc/smartdns/smartdns.conf"

SYSTEMD_SERVICE_FILE_PATH = "/lib/systemd/system/smartdns-rs.service"
SYSTEMD_CTL = "systemctl"
SYSTEMD_RUN_DIR = "/run/systemd/system"

INITD_DIR = "/etc/init.d"
INITD_SERVICE_FILE_PATH = "/etc/init.d/smartdns-rs"
INITD_CTL = "service"
PROCD = "procd"

MACOS_BIN_PATH = "/usr/local/sbin/smartdns"
MACOS_CONF_DIR = "/usr/local/etc/smartdns"
MACOS_CONF_PATH = "/usr/local/etc/smartdns/smartdns.conf"
LAUNCHD_SERVICE_FILE_PATH = "/Library/LaunchDaemons/smartdns-rs.plist"
LAUNCHCTL = "launchctl"

BREW = "brew"
BREW_SERVICE_NAME = "smartdns"
BREW_CONF_PATH = "/usr/local/etc/smartdns/smartdns.conf"

WINDOWS_BIN_PATH = "C:\\Windows\\System32\\smartdns.exe"
WINDOWS_CONF_DIR = "C:\\ProgramData\\smartdns"
WINDOWS_CONF_PATH = "C:\\ProgramData\\smartdns\\smartdns.conf"
WINDOWS_SERVICE_FLAG = "--ws7642ea814a90496daaa54f2820254f12"
SC_EXE = "sc.exe"

ServiceFile = Union[str, bytes, Mapping[str, Union[str, bytes]]]


def _cmd(program: str, *args: str) -> ServiceCommand:
    return ServiceCommand(program=program, args=list(args))


def _os_release_says(check: Callable[[os_release.OsRelease], bool]) -> bool:
    try:
        return check(os_release.get())
    except OSError:
        return False


def is_systemd() -> bool:
    """Whether systemctl is available and systemd is the running init."""
    return shutil.which(SYSTEMD_CTL) is not None and Path(SYSTEMD_RUN_DIR).exists()


def is_initd() -> bool:
    """Whether the system has a sysvinit script directory."""
    return Path(INITD_DIR).exists()


def is_openwrt() -> bool:
    """Whether procd is available and os-release names OpenWrt."""
    return shutil.which(PROCD) is not None and _os_release_says(
        lambda release: release.is_openwrt()
    )


def is_debian() -> bool:
    """Whether os-release names Debian or a Debian derivative."""
    return _os_release_says(lambda release: release.is_debian())


def _standard_installer(
    bin_path: str,
    conf_dir: str,
    conf_path: str,
    default_conf: str | bytes,
    service_path: str,
    service_file: str | bytes,
    service_mode: int,
) -> Installer:
    return (
        Installer.builder()
        .install_current_exe_to(bin_path)
        .add_item(InstallItem.directory(conf_dir, UninstallStrategy.REMOVE_IF_EMPTY))
        .add_item(
            InstallItem.file(
                conf_path,
                default_conf,
                0o644,
                InstallStrategy.PRESERVE,
                UninstallStrategy.KEEP,
            )
        )
        .add_item(InstallItem.file(service_path, service_file, service_mode))
        .build()
    )


def systemd_definition(default_conf: str | bytes, service_file: str | bytes) -> ServiceDefinition:
    """A systemd unit managed with systemctl."""
    installer = _standard_installer(
        LINUX_BIN_PATH,
        LINUX_CONF_DIR,
        LINUX_CONF_PATH,
        default_conf,
        SYSTEMD_SERVICE_FILE_PATH,
        service_file,
        0o644,
    )
    unit = f"{SERVICE_NAME}.service"
    commands = ServiceCommands(
        install=_cmd(SYSTEMD_CTL, "enable", unit),
        uninstall=_cmd(SYSTEMD_CTL, "disable", unit),
        start=_cmd(SYSTEMD_CTL, "start", unit),
        stop=_cmd(SYSTEMD_CTL, "stop", unit),
        restart=_cmd(SYSTEMD_CTL, "restart", unit),
        status=_cmd(SYSTEMD_CTL, "status", unit),
    )
    return ServiceDefinition(NAME, installer, commands)


def _pick_initd_script(service_file: ServiceFile) -> str | bytes:
    if not isinstance(service_file, Mapping):
        return service_file
    if is_openwrt():
        return service_file["openwrt"]
    if is_debian():
        return service_file["debian"]
    return service_file["others"]


def initd_definition(default_conf: str | bytes, service_file: ServiceFile) -> ServiceDefinition:
    """A sysvinit script managed with ``service``.

    ``service_file`` is the script itself, or a mapping with ``openwrt``,
    ``debian`` and ``others`` scripts chosen by the detected distribution.
    """
    installer = _standard_installer(
        LINUX_BIN_PATH,
        LINUX_CONF_DIR,
        LINUX_CONF_PATH,
        default_conf,
        INITD_SERVICE_FILE_PATH,
        _pick_initd_script(service_file),
        0o755,
    )
    commands = ServiceCommands(
        install=_cmd(INITD_CTL, SERVICE_NAME, "enable"),
        uninstall=_cmd(INITD_CTL, SERVICE_NAME, "disable"),
        start=_cmd(INITD_CTL, SERVICE_NAME, "start"),
        stop=_cmd(INITD_CTL, SERVICE_NAME, "stop"),
        restart=_cmd(INITD_CTL, SERVICE_NAME, "restart"),
        status=_cmd(INITD_CTL, SERVICE_NAME, "status"),
    )
    return ServiceDefinition(NAME, installer, commands)


def brew_definition() -> ServiceDefinition:
    """A Homebrew formula managed with ``brew services``."""
    status_script = "".join(
        [
            f'O=$(brew services info {BREW_SERVICE_NAME}) && echo "$O" '
            '| grep -q "Running: true" &&',
            ' (echo "$O" && exit 0) || (echo "$O" && exit 1)',
        ]
    )
    commands = ServiceCommands(
        install=_cmd(BREW, "install", BREW_SERVICE_NAME),
        uninstall=_cmd(BREW, "uninstall", BREW_SERVICE_NAME),
        start=_cmd(BREW, "services", "start", BREW_SERVICE_NAME),
        stop=_cmd(BREW, "services", "stop", BREW_SERVICE_NAME),
        restart=_cmd(BREW, "services", "restart", BREW_SERVICE_NAME),
        status=_cmd("sh", "-c", status_script),
    )
    return ServiceDefinition(NAME, Installer.builder().build(), commands)


def launchctl_definition(
    default_conf: str | bytes, service_file: str | bytes
) -> ServiceDefinition:
    """A launchd daemon managed with launchctl."""
    installer = _standard_installer(
        MACOS_BIN_PATH,
        MACOS_CONF_DIR,
        MACOS_CONF_PATH,
        default_conf,
        LAUNCHD_SERVICE_FILE_PATH,
        service_file,
        0o644,
    )
    commands = ServiceCommands(
        start=_cmd(LAUNCHCTL, "load", LAUNCHD_SERVICE_FILE_PATH),
        stop=_cmd(LAUNCHCTL, "bootout", f"system/{SERVICE_NAME}"),
        status=_cmd(LAUNCHCTL, "list", SERVICE_NAME),
    )
    return ServiceDefinition(NAME, installer, commands)


def windows_definition(default_conf: str | bytes) -> ServiceDefinition:
    """A Windows service managed with sc.exe."""
    installer = (
        Installer.builder()
        .install_current_exe_to(WINDOWS_BIN_PATH)
        .add_item(
            InstallItem.directory(WINDOWS_CONF_DIR, UninstallStrategy.REMOVE_IF_EMPTY)
        )
        .add_item(
            InstallItem.file(
                WINDOWS_CONF_PATH,
                default_conf,
                None,
                InstallStrategy.PRESERVE,
                UninstallStrategy.KEEP,
            )
        )
        .build()
    )

    run_args = ["run", "-c", WINDOWS_CONF_PATH]
    if sys.platform == "win32":
        run_args.append(WINDOWS_SERVICE_FLAG)
    bin_path = " ".join(escape(part) for part in [WINDOWS_BIN_PATH, *run_args])

    query = f"sc query {SERVICE_NAME}"
    status_script = " ".join(
        [
            f"{query} | findstr STATE.*:.*RUNNING > NUL",
            f"&& ({query} && exit 0) ||  ({query} && exit 1)",
        ]
    )

    commands = ServiceCommands(
        install=_cmd(
            SC_EXE,
            "create",
            SERVICE_NAME,
            "type=",
            "own",
            "start=",
            "auto",
            "binpath=",
            bin_path,
            "displayname=",
            NAME,
        ),
        uninstall=_cmd(SC_EXE, "delete", SERVICE_NAME),
        start=_cmd(SC_EXE, "start", SERVICE_NAME),
        stop=_cmd(SC_EXE, "stop", SERVICE_NAME),
        status=_cmd("cmd.exe", "/C", status_script),
    )
    return ServiceDefinition(NAME, installer, commands)


def create_service_definition(
    default_conf: str | bytes, service_file: ServiceFile
) -> ServiceDefinition:
    """The definition suited to the running system."""
    platform = sys.platform
    if platform == "win32":
        return windows_definition(default_conf)
    if platform == "darwin":
        if isinstance(service_file, Mapping):
            raise TypeError("launchd needs a single service file")
        return launchctl_definition(default_conf, service_file)
    if platform.startswith("linux"):
        if is_systemd():
            if isinstance(service_file, Mapping):
                raise TypeError("systemd needs a single service file")
            return systemd_definition(default_conf, service_file)
        if is_initd():
            return initd_definition(default_conf, service_file)
        raise RuntimeError("no supported service manager found")
    raise RuntimeError(f"services are not supported on {platform}")


def service_manager(default_conf: str | bytes, service_file: ServiceFile) -> ServiceManager:
    """A manager for the service definition suited to the running system."""
    return ServiceManager(create_service_definition(default_conf, service_file))
import shutil
import sys
from pathlib import Path

import pytest

from dnsinfra import service_defs
from dnsinfra.installer import InstallStrategy, UninstallStrategy
from dnsinfra.service_defs import (
    brew_definition,
    create_service_definition,
    initd_definition,
    is_openwrt,
    is_systemd,
    launchctl_definition,
    service_manager,
    systemd_definition,
    windows_definition,
)
from dnsinfra.service_manager import ServiceManager


@pytest.fixture
def fake_exe(tmp_path, monkeypatch):
    exe = tmp_path / "prog"
    exe.write_bytes(b"binary")
    monkeypatch.setattr(sys, "argv", [str(exe)])
    return exe.resolve()


def _item(definition, path):
    return next(item for item in definition.installer.items if item.path == Path(path))


def test_systemd_commands(fake_exe):
    definition = systemd_definition("conf", "unit")
    commands = definition.commands
    assert definition.name == "SmartDNS"
    assert commands.start.args == ["start", "smartdns-rs.service"]
    assert commands.stop.args == ["stop", "smartdns-rs.service"]
    assert commands.install.args == ["enable", "smartdns-rs.service"]
    assert str(commands.status) == "systemctl status smartdns-rs.service"


def test_systemd_installer_items(fake_exe):
    definition = systemd_definition("conf", "unit")
    items = definition.installer.items
    assert items[0].source == fake_exe
    assert items[0].path == Path("/usr/sbin/smartdns")

    conf_dir = _item(definition, "/etc/smartdns")
    assert conf_dir.is_directory()
    assert conf_dir.uninstall_strategy is UninstallStrategy.REMOVE_IF_EMPTY

    conf = _item(definition, "/etc/smartdns/smartdns.conf")
    assert conf.source == b"conf"
    assert conf.mode == 0o644
    assert conf.install_strategy is InstallStrategy.PRESERVE
    assert conf.uninstall_strategy is UninstallStrategy.KEEP

    unit = _item(definition, "/lib/systemd/system/smartdns-rs.service")
    assert unit.source == b"unit"
    assert unit.mode == 0o644


def test_initd_script_mode_and_commands(fake_exe):
    definition = initd_definition("conf", "#!/bin/sh\n")
    script = _item(definition, "/etc/init.d/smartdns-rs")
    assert script.mode == 0o755
    assert script.source == b"#!/bin/sh\n"
    assert definition.commands.start.args == ["smartdns-rs", "start"]
    assert str(definition.commands.restart) == "service smartdns-rs restart"


def test_brew_definition():
    definition = brew_definition()
    assert definition.installer.items == ()
    assert definition.commands.start.args == ["services", "start", "smartdns"]
    assert definition.commands.uninstall.args == ["uninstall", "smartdns"]
    status = definition.commands.status
    assert status.program == "sh"
    assert "brew services info smartdns" in status.args[1]
    assert "\n" not in status.args[1]


def test_launchctl_definition(fake_exe):
    definition = launchctl_definition("conf", "<plist/>")
    assert definition.commands.restart is None
    assert definition.commands.install is None
    assert definition.commands.stop.args == ["bootout", "system/smartdns-rs"]
    assert definition.commands.start.args == [
        "load",
        "/Library/LaunchDaemons/smartdns-rs.plist",
    ]
    assert _item(definition, "/usr/local/etc/smartdns/smartdns.conf").mode == 0o644


def test_windows_definition(fake_exe, monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    definition = windows_definition("conf")
    args = definition.commands.install.args
    bin_path = args[args.index("binpath=") + 1]
    assert bin_path == (
        "C:\\Windows\\System32\\smartdns.exe run -c C:\\ProgramData\\smartdns\\smartdns.conf"
    )
    assert args[-2:] == ["displayname=", "SmartDNS"]
    conf = _item(definition, "C:\\ProgramData\\smartdns\\smartdns.conf")
    assert conf.mode is None
    assert conf.install_strategy is InstallStrategy.PRESERVE


def test_windows_definition_adds_service_flag_on_windows(fake_exe, monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")
    definition = windows_definition("conf")
    args = definition.commands.install.args
    bin_path = args[args.index("binpath=") + 1]
    assert bin_path.endswith("--ws7642ea814a90496daaa54f2820254f12")


def test_is_systemd_false_without_systemctl(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    assert is_systemd() is False


def test_is_openwrt_false_without_procd(monkeypatch):
    monkeypatch.setattr(shutil, "which", lambda name: None)
    assert is_openwrt() is False


def test_unsupported_platform_raises(monkeypatch):
    monkeypatch.setattr(sys, "platform", "sunos5")
    with pytest.raises(RuntimeError):
        create_service_definition("conf", "unit")


def test_service_manager_on_windows(fake_exe, monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")
    manager = service_manager("conf", "unit")
    assert isinstance(manager, ServiceManager)
    assert manager.definition.commands.start.args == ["start", "smartdns-rs"]
    assert manager.definition.commands.start.program == service_defs.SC_EXE
"""
OS service definitions for running `warden run` under the platform's
service manager (systemd, launchd, Windows Task Scheduler).
"""

from __future__ import annotations

import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from xml.sax.saxutils import escape

from warden.utils.paths import get_daemon_log_file

DEFAULT_WARDEN_COMMAND = "openclaw-warden"


def resolve_warden_command() -> str:
    """Executable named in service files, respecting WARDEN_COMMAND env var."""
    return os.environ.get("WARDEN_COMMAND") or DEFAULT_WARDEN_COMMAND


class ServiceTemplate(ABC):
    """A service-manager definition that keeps `warden run` alive."""

    name: str

    def __init__(self, command: str | None = None):
        self.command = command or resolve_warden_command()

    @abstractmethod
    def render(self, config_path: Path) -> str:
        """Return the service file content for the given warden config."""


class SystemdService(ServiceTemplate):
    name = "systemd"

    def render(self, config_path: Path) -> str:
        return f"""[Unit]
Description=OpenClaw Warden
After=network.target

[Service]
Type=simple
Environment=WARDEN_CONFIG={config_path}
ExecStart={self.command} run
Restart=always
RestartSec=5

[Install]
WantedBy=default.target
"""


class LaunchdService(ServiceTemplate):
    name = "launchd"

    def __init__(self, command: str | None = None, log_file: Path | None = None):
        super().__init__(command)
        self.log_file = log_file or get_daemon_log_file()

    def render(self, config_path: Path) -> str:
        command = escape(self.command)
        log_file = escape(str(self.log_file))
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
  <dict>
    <key>Label</key>
    <string>ai.openclaw.warden</string>
    <key>ProgramArguments</key>
    <array>
      <string>{command}</string>
      <string>run</string>
    </array>
    <key>EnvironmentVariables</key>
    <dict>
      <key>WARDEN_CONFIG</key>
      <string>{escape(str(config_path))}</string>
    </dict>
    <key>KeepAlive</key>
    <true/>
    <key>RunAtLoad</key>
    <true/>
    <key>StandardOutPath</key>
    <string>{log_file}</string>
    <key>StandardErrorPath</key>
    <string>{log_file}</string>
  </dict>
</plist>
"""


class WindowsTaskService(ServiceTemplate):
    name = "windows-task"

    def render(self, config_path: Path) -> str:
        return f"""<?xml version="1.0" encoding="UTF-16"?>
<Task version="1.2" xmlns="http://schemas.microsoft.com/windows/2004/02/mit/task">
  <RegistrationInfo>
    <Name>OpenClawWarden</Name>
  </RegistrationInfo>
  <Triggers>
    <LogonTrigger>
      <Enabled>true</Enabled>
    </LogonTrigger>
  </Triggers>
  <Principals>
    <Principal id="Author">
      <LogonType>InteractiveToken</LogonType>
      <RunLevel>LeastPrivilege</RunLevel>
    </Principal>
  </Principals>
  <Settings>
    <MultipleInstancesPolicy>IgnoreNew</MultipleInstancesPolicy>
    <DisallowStartIfOnBatteries>false</DisallowStartIfOnBatteries>
    <StopIfGoingOnBatteries>false</StopIfGoingOnBatteries>
    <StartWhenAvailable>true</StartWhenAvailable>
    <RunOnlyIfNetworkAvailable>false</RunOnlyIfNetworkAvailable>
    <IdleSettings>
      <StopOnIdleEnd>false</StopOnIdleEnd>
      <RestartOnIdle>false</RestartOnIdle>
    </IdleSettings>
    <AllowStartOnDemand>true</AllowStartOnDemand>
    <Enabled>true</Enabled>
  </Settings>
  <Actions Context="Author">
    <Exec>
      <Command>{escape(self.command)}</Command>
      <Arguments>run</Arguments>
      <WorkingDirectory>{escape(str(config_path.parent))}</WorkingDirectory>
    </Exec>
  </Actions>
</Task>
"""


def get_service_template(platform: str | None = None) -> ServiceTemplate:
    """Pick the service definition for a sys.platform value (default: current)."""
    platform = platform or sys.platform
    if platform == "darwin":
        return LaunchdService()
    if platform == "win32":
        return WindowsTaskService()
    return SystemdService()

"""systemd integration: install or remove Home Server Navigator as a unit.

Usage::

    sudo python -m navigator systemd install [--port 8080] [--no-enable]
    sudo python -m navigator systemd uninstall [--remove-data]
"""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "home-server-navigator"
DEFAULT_UNIT_PATH = f"/etc/systemd/system/{APP_NAME}.service"
DEFAULT_ENV_PATH = f"/etc/default/{APP_NAME}"
DEFAULT_DATA_DIR = f"/var/lib/{APP_NAME}"


class InstallError(Exception):
    """A filesystem or ``systemctl`` step of (un)installation failed."""


@dataclass
class InstallOptions:
    unit_path: str = DEFAULT_UNIT_PATH
    env_path: str = DEFAULT_ENV_PATH
    data_dir: str = DEFAULT_DATA_DIR
    data_file: str | None = None
    host: str = "0.0.0.0"
    port: int = 8080
    default_host: str = "localhost"
    python: str = sys.executable
    enable: bool = True

    @property
    def resolved_data_file(self) -> str:
        return self.data_file or str(Path(self.data_dir) / "services.json")


@dataclass
class UninstallOptions:
    unit_path: str = DEFAULT_UNIT_PATH
    env_path: str = DEFAULT_ENV_PATH
    data_dir: str = DEFAULT_DATA_DIR
    remove_data: bool = False


# ──────────────────────────────────────────────────────────────────
# Rendering
# ──────────────────────────────────────────────────────────────────

def render_env(host: str, port: int, default_host: str, data_file: str) -> str:
    return (
        f"# {APP_NAME} env\n"
        f"NAVIGATOR_HOST={host}\n"
        f"NAVIGATOR_PORT={port}\n"
        f"NAVIGATOR_DEFAULT_HOST={default_host}\n"
        f"NAVIGATOR_DATA_FILE={data_file}\n"
    )


def render_unit(python: str, env_path: str) -> str:
    return (
        "[Unit]\n"
        "Description=Home Server Navigator\n"
        "After=network-online.target\n"
        "Wants=network-online.target\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        f"EnvironmentFile={env_path}\n"
        f"ExecStart={python} -m navigator\n"
        "Restart=on-failure\n"
        "RestartSec=2\n"
        "\n"
        "NoNewPrivileges=true\n"
        "PrivateTmp=true\n"
        "ProtectSystem=full\n"
        "ProtectHome=true\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )


def unit_name_from_path(path: str) -> str:
    name = Path(path).name
    if not name:
        raise InstallError(f"invalid unit path: {path}")
    return name


# ──────────────────────────────────────────────────────────────────
# systemctl
# ──────────────────────────────────────────────────────────────────

def run_systemctl(*args: str, allow_failure: bool = False) -> None:
    cmd = ["systemctl", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        if allow_failure:
            logger.warning("%s could not start: %s", " ".join(cmd), exc)
            return
        raise InstallError(f"failed spawning systemctl: {exc}") from exc

    if result.returncode == 0 or allow_failure:
        return
    raise InstallError(
        f"systemctl {' '.join(args)} failed (code: {result.returncode})\n"
        f"stdout: {result.stdout}\nstderr: {result.stderr}"
    )


def _require_linux() -> None:
    if platform.system() != "Linux":
        raise InstallError("systemd install is only supported on Linux")


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise InstallError(f"failed writing {path}: {exc}") from exc


def _remove(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        raise InstallError(f"failed removing {path}: {exc}") from exc


# ──────────────────────────────────────────────────────────────────
# Install / uninstall
# ──────────────────────────────────────────────────────────────────

def install(opts: InstallOptions) -> str:
    """Write env + unit files, reload systemd and (optionally) start the unit.

    Returns:
        The unit name.
    """
    _require_linux()
    unit_name = unit_name_from_path(opts.unit_path)
    try:
        Path(opts.data_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise InstallError(f"failed creating directory {opts.data_dir}: {exc}") from exc

    _write(
        Path(opts.env_path),
        render_env(opts.host, opts.port, opts.default_host, opts.resolved_data_file),
    )
    _write(Path(opts.unit_path), render_unit(opts.python, opts.env_path))

    run_systemctl("daemon-reload")
    if opts.enable:
        run_systemctl("enable", "--now", unit_name)
        logger.info("Installed and started %s", unit_name)
    else:
        logger.info("Installed %s (enable with: systemctl enable --now %s)", unit_name, unit_name)
    return unit_name


def uninstall(opts: UninstallOptions) -> str:
    """Stop and remove the unit; the data directory is kept unless asked."""
    _require_linux()
    unit_name = unit_name_from_path(opts.unit_path)

    run_systemctl("disable", "--now", unit_name, allow_failure=True)
    _remove(Path(opts.unit_path))
    _remove(Path(opts.env_path))
    run_systemctl("daemon-reload")

    if opts.remove_data:
        data_dir = Path(opts.data_dir)
        if data_dir.exists():
            try:
                shutil.rmtree(data_dir)
            except OSError as exc:
                raise InstallError(f"failed removing data dir {data_dir}: {exc}") from exc

    logger.info("Uninstalled %s", unit_name)
    return unit_name

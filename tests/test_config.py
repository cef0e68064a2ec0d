"""Tests for NavigatorConfig and the command-line entry point."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from navigator.__main__ import build_parser, main
from navigator.config import NavigatorConfig
from navigator.install import InstallError


class TestNavigatorConfig:
    def test_defaults(self):
        config = NavigatorConfig.from_env({})
        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.default_host == "localhost"
        assert config.data_path == Path("data/services.json")
        assert config.static_dir is None
        assert config.probe_concurrency == 16
        assert config.discover_on_start is True

    def test_env_values_coerced(self):
        config = NavigatorConfig.from_env({
            "NAVIGATOR_PORT": "9090",
            "NAVIGATOR_DEFAULT_HOST": "nas.local",
            "NAVIGATOR_PROBE_TIMEOUT": "1.5",
            "NAVIGATOR_DISCOVER_ON_START": "false",
            "NAVIGATOR_STATIC_DIR": "/srv/ui",
        })
        assert config.port == 9090
        assert config.default_host == "nas.local"
        assert config.probe_timeout == 1.5
        assert config.discover_on_start is False
        assert config.static_dir == "/srv/ui"

    def test_invalid_and_blank_values_ignored(self, caplog):
        config = NavigatorConfig.from_env({"NAVIGATOR_PORT": "eighty", "NAVIGATOR_HOST": ""})
        assert config.port == 8080
        assert config.host == "0.0.0.0"
        assert "NAVIGATOR_PORT" in caplog.text

    def test_merged_skips_none(self):
        base = NavigatorConfig(port=9000, default_host="nas.local")
        config = base.merged(port=None, default_host="box", data_file="/tmp/s.json")
        assert config.port == 9000
        assert config.default_host == "box"
        assert config.data_file == "/tmp/s.json"
        assert base.default_host == "nas.local"


class TestParser:
    def test_serve_flags(self):
        args = build_parser().parse_args(["--port", "9000", "--default-host", "nas", "--no-discover"])
        assert args.command is None
        assert args.port == 9000
        assert args.default_host == "nas"
        assert args.no_discover is True

    def test_systemd_install_flags(self):
        args = build_parser().parse_args([
            "systemd", "install", "--port", "9000", "--data-dir", "/srv/nav", "--no-enable",
        ])
        assert args.command == "systemd"
        assert args.systemd_command == "install"
        assert args.install_port == 9000
        assert args.data_dir == "/srv/nav"
        assert args.no_enable is True

    def test_systemd_requires_subcommand(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["systemd"])


class TestMain:
    def test_serve_merges_env_and_flags(self, monkeypatch):
        monkeypatch.setenv("NAVIGATOR_DEFAULT_HOST", "from-env")
        monkeypatch.setenv("NAVIGATOR_PORT", "7000")
        with patch("navigator.server.main") as serve:
            main(["--port", "9000", "--no-discover"])

        config = serve.call_args.args[0]
        assert config.port == 9000
        assert config.default_host == "from-env"
        assert config.discover_on_start is False

    def test_systemd_install(self, capsys):
        with patch("navigator.__main__.install", return_value="hsn.service") as install:
            main(["systemd", "install", "--unit-path", "/tmp/hsn.service", "--no-enable"])

        opts = install.call_args.args[0]
        assert opts.unit_path == "/tmp/hsn.service"
        assert opts.enable is False
        assert "Installed: hsn.service" in capsys.readouterr().out

    def test_systemd_uninstall(self, capsys):
        with patch("navigator.__main__.uninstall", return_value="hsn.service") as uninstall:
            main(["systemd", "uninstall", "--remove-data"])

        assert uninstall.call_args.args[0].remove_data is True
        assert "Uninstalled: hsn.service" in capsys.readouterr().out

    def test_install_error_exits_nonzero(self, capsys):
        with patch("navigator.__main__.install", side_effect=InstallError("denied")):
            with pytest.raises(SystemExit) as exc:
                main(["systemd", "install"])
        assert exc.value.code == 1
        assert "denied" in capsys.readouterr().err

"""Home Server Navigator entry point.

Usage::

    python -m navigator [--host H] [--port P] [--default-host H] [--data-file PATH]
    python -m navigator systemd install [--no-enable] ...
    python -m navigator systemd uninstall [--remove-data] ...
"""

from __future__ import annotations

import argparse
import logging
import sys

from navigator import __version__
from navigator.install import (
    DEFAULT_DATA_DIR,
    DEFAULT_ENV_PATH,
    DEFAULT_UNIT_PATH,
    InstallError,
    InstallOptions,
    UninstallOptions,
    install,
    uninstall,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="home-server-navigator",
        description="All-in-one home server service navigator",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--host", default=None, help="Listen host (env NAVIGATOR_HOST, default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (env NAVIGATOR_PORT, default 8080)")
    parser.add_argument(
        "--default-host",
        default=None,
        help="Host used in service links (env NAVIGATOR_DEFAULT_HOST, default localhost)",
    )
    parser.add_argument(
        "--data-file",
        metavar="PATH",
        default=None,
        help="Catalog file (env NAVIGATOR_DATA_FILE, default data/services.json)",
    )
    parser.add_argument(
        "--static-dir",
        metavar="PATH",
        default=None,
        help="Built UI assets to serve (env NAVIGATOR_STATIC_DIR)",
    )
    parser.add_argument(
        "--no-discover",
        action="store_true",
        help="Skip the discovery pass at startup",
    )

    sub = parser.add_subparsers(dest="command")
    systemd = sub.add_parser("systemd", help="Manage the systemd unit")
    systemd_sub = systemd.add_subparsers(dest="systemd_command", required=True)

    inst = systemd_sub.add_parser("install", help="Install unit/env and optionally enable/start")
    inst.add_argument("--unit-path", default=DEFAULT_UNIT_PATH)
    inst.add_argument("--env-path", default=DEFAULT_ENV_PATH)
    inst.add_argument("--data-dir", default=DEFAULT_DATA_DIR)
    inst.add_argument("--data-file", dest="install_data_file", default=None,
                      help="Override data file path (default: <data-dir>/services.json)")
    inst.add_argument("--host", dest="install_host", default="0.0.0.0")
    inst.add_argument("--port", dest="install_port", type=int, default=8080)
    inst.add_argument("--default-host", dest="install_default_host", default="localhost")
    inst.add_argument("--python", default=sys.executable, help="Interpreter for ExecStart")
    inst.add_argument("--no-enable", action="store_true", help="Do not enable/start the unit")

    uninst = systemd_sub.add_parser("uninstall", help="Remove unit/env (data kept by default)")
    uninst.add_argument("--unit-path", default=DEFAULT_UNIT_PATH)
    uninst.add_argument("--env-path", default=DEFAULT_ENV_PATH)
    uninst.add_argument("--data-dir", default=DEFAULT_DATA_DIR)
    uninst.add_argument("--remove-data", action="store_true", help="Remove data directory (DANGEROUS)")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "systemd":
        try:
            if args.systemd_command == "install":
                unit = install(InstallOptions(
                    unit_path=args.unit_path,
                    env_path=args.env_path,
                    data_dir=args.data_dir,
                    data_file=args.install_data_file,
                    host=args.install_host,
                    port=args.install_port,
                    default_host=args.install_default_host,
                    python=args.python,
                    enable=not args.no_enable,
                ))
                print(f"Installed: {unit}")
            else:
                unit = uninstall(UninstallOptions(
                    unit_path=args.unit_path,
                    env_path=args.env_path,
                    data_dir=args.data_dir,
                    remove_data=args.remove_data,
                ))
                print(f"Uninstalled: {unit}")
        except InstallError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        return

    from navigator.config import NavigatorConfig
    from navigator.server import main as serve

    config = NavigatorConfig.from_env().merged(
        host=args.host,
        port=args.port,
        default_host=args.default_host,
        data_file=args.data_file,
        static_dir=args.static_dir,
        discover_on_start=False if args.no_discover else None,
    )
    serve(config)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
sshmirror  —  mirror a local tree onto a remote host while you work in a remote shell
=====================================================================================

Subcommands:
  init      Create a .sshmirror config file in the current directory.
  start     Connect, push the local tree, then keep it in sync while an
            interactive remote shell runs over the same connection.

Run 'sshmirror <subcommand> --help' for more details.
"""
import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from . import config as _cfg
from .address import parse_address
from .errors import (AddressError, AuthError, ConfigError, ConnectError, SessionError,
                     WatchError)
from .utils.logging import set_verbose, warn

DEFAULT_STIGNORE = """# Paths matching these patterns are never pushed.
# Hidden entries (.git, .venv, …) are always skipped.
**/node_modules/**
**/__pycache__/**
**/*.pyc
**/*.swp
*.log
"""


# ── init ─────────────────────────────────────────────────────────────────────

def _yq(value: str) -> str:
    """Wrap a string in YAML single quotes, escaping embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def cmd_init(args) -> int:
    """Create a .sshmirror profile file in the current directory."""
    target = Path.cwd() / _cfg.PROJECT_FILE

    if target.exists() and not args.force:
        print(f"error: {_cfg.PROJECT_FILE} already exists in {Path.cwd()}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        return 1

    g_defaults = _cfg.load_global_config().get("defaults", {}) or {}

    local_root = str(Path(args.local or Path.cwd()).expanduser())
    remote_root = args.remote or Path.cwd().name

    server = args.server or g_defaults.get("server", "")
    if not server and sys.stdin.isatty():
        server = input("Server hostname: ").strip()
    if not server:
        print("error: a server is required (--server).", file=sys.stderr)
        return 1

    user = args.user or g_defaults.get("user", "root")
    port = args.port or int(g_defaults.get("port", 22))
    base_remote = args.base_remote or g_defaults.get("base_remote", "")

    lines = [
        "# .sshmirror — sshmirror project configuration",
        "#",
        "# profiles: list of mirror profiles for this project.",
        "# remote_root is relative to defaults.base_remote (or the remote home)",
        "# when it does not start with '/'.",
        "profiles:",
        f"  - name: {args.profile}",
        f"    server: {_yq(server)}",
        f"    port: {port}",
        f"    user: {_yq(user)}",
        f"    local_root: {_yq(local_root.replace(chr(92), '/'))}",
        f"    remote_root: {_yq(remote_root)}",
        f"    file_mode: '{_cfg.DEFAULT_FILE_MODE:04o}'",
    ]
    if base_remote:
        lines += [
            "defaults:",
            f"  base_remote: {_yq(base_remote)}",
        ]
    content = "\n".join(lines) + "\n"

    stignore_path = Path.cwd() / _cfg.DEFAULT_IGNORE_FILE
    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        if not stignore_path.exists():
            print(f"[dry-run] Would write {stignore_path}:")
            print(DEFAULT_STIGNORE)
        return 0

    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")
    if not stignore_path.exists():
        stignore_path.write_text(DEFAULT_STIGNORE, encoding="utf-8")
        print(f"Created {stignore_path}")
    elif args.verbose:
        print(f"{stignore_path} already exists; not modified.")
    if args.verbose:
        print(content)
    return 0


# ── start ────────────────────────────────────────────────────────────────────

def config_from_args(args) -> _cfg.SyncConfig:
    """Profile (global + nearest .sshmirror) < address < flags."""
    address = parse_address(args.address) if args.address else None
    profile = _cfg.load_profile(args.profile)
    return _cfg.build_config(
        profile, address,
        local_root=args.local,
        skip_initial_sync=True if args.skip_initial_sync else None,
        file_mode=args.mode,
        shell=False if args.no_shell else None,
        verbose=args.verbose,
    )


def cmd_start(args) -> int:
    """Mirror the local tree and open the remote shell."""
    from .core.sync_engine import run_mirror

    set_verbose(args.verbose)
    try:
        cfg = config_from_args(args)
    except (AddressError, ConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    if not cfg.local_root.is_dir():
        print(f"error: local root is not a directory: {cfg.local_root}", file=sys.stderr)
        return 2

    try:
        return run_mirror(cfg)
    except (ConnectError, AuthError, SessionError, WatchError) as exc:
        warn(f"Fatal error: {exc}")
        return 1
    except KeyboardInterrupt:
        warn("Interrupted by user.")
        return 130


# ── main ──────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshmirror",
        description="Mirror a local directory onto a remote host over SSH, with a remote shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create a .sshmirror config file in the current directory",
        description="Create a .sshmirror YAML config file for this project.",
    )
    init_p.add_argument("--local", metavar="PATH",
                        help="Local root directory (default: current directory)")
    init_p.add_argument("--remote", metavar="PATH",
                        help="Remote root path (relative to base_remote or absolute)")
    init_p.add_argument("--server", metavar="HOST",
                        help="Remote server hostname or IP")
    init_p.add_argument("--user", metavar="NAME",
                        help="SSH username (default: root)")
    init_p.add_argument("--port", type=int, metavar="N",
                        help="SSH port (default: 22)")
    init_p.add_argument("--base-remote", metavar="PATH",
                        help="Base remote path prepended to relative remote roots")
    init_p.add_argument("--profile", metavar="NAME", default="default",
                        help="Profile name to create (default: default)")
    init_p.add_argument("--force", action="store_true",
                        help="Overwrite existing .sshmirror")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")
    init_p.add_argument("-v", "--verbose", action="store_true",
                        help="Show extra output")

    # ── start ─────────────────────────────────────────────────────────────────
    start_p = subparsers.add_parser(
        "start",
        help="Mirror the local tree and open a remote shell",
        description="Push the local tree, then keep it in sync while a remote shell runs.",
    )
    start_p.add_argument("address", nargs="?", metavar="ADDRESS",
                         help="user[:password]@host[:port][:remotePath] "
                              "(default: from .sshmirror)")
    start_p.add_argument("--local", metavar="PATH",
                         help="Local root directory (default: profile or current directory)")
    start_p.add_argument("--skip-initial-sync", action="store_true",
                         help="Do not push the whole tree on start; only watch for changes")
    start_p.add_argument("--no-shell", action="store_true",
                         help="Sync only, no interactive shell (Ctrl+C to stop)")
    start_p.add_argument("--mode", metavar="OCTAL",
                         help="Permission bits for pushed files (default: 0755)")
    start_p.add_argument("--profile", metavar="NAME", default="default",
                         help="Profile to use (default: default)")
    start_p.add_argument("-v", "--verbose", action="store_true",
                         help="Show every remote command")
    return parser


def main(argv: Optional[list] = None):
    """CLI entry point for sshmirror"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        sys.exit(cmd_init(args))
    elif args.command == "start":
        sys.exit(cmd_start(args))
    else:
        parser.print_help()
        sys.exit(2)


if __name__ == "__main__":
    main()

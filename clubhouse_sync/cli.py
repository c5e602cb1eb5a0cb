"""
clubhouse-sync: edit Clubhouse stories as local documents
"""

import argparse
import json
import sys

from clubhouse_sync import config
from clubhouse_sync.commands import (
    cmd_create,
    cmd_epics,
    cmd_labels,
    cmd_open,
    cmd_projects,
    cmd_refresh,
    cmd_save,
    cmd_states,
)
from clubhouse_sync.exceptions import CliError

HELP_TEXT = """\
Usage: clubhouse-sync <command> [args...]

Global flags:
  --format table          Output as readable text instead of JSON (default: json)
  --dry-run               Log updates/creates instead of sending them
  --quiet, -q             Suppress notifications
  --verbose, -v           Enable HTTP request logging
  --version               Show version number

Commands:
  open <story_id> <file>  - Write a story into a local document file
    --force                 Overwrite the file even if it has unsaved edits
  save <file>             - Save document edits back to the story
                            (refused if the story changed remotely)
  refresh <file>          - Reload the document from the remote story
    --force                 Discard unsaved local edits
  create <org_file>       - Create a story from an org heading and its section
    --heading <title>       Heading to use (default: first heading)
    --project <name|id>     Project (prompted if omitted)
    --epic <name|id>        Epic (optional, prompted if omitted)
    --type <type>           feature, bug, or chore
    --state <name>          Workflow state name
    --labels <a,b>          Comma-separated label names
  projects                - List projects
  epics                   - List epics
  labels                  - List labels
  states                  - List workflows and their states
"""


# ---------------------------------------------------------------------------
# Global flag extraction (before argparse, so --format works after subcommand)
# ---------------------------------------------------------------------------


def _extract_global_flags(argv):
    """Extract global flags from argv regardless of position.

    Returns (format_str, dry_run, quiet, verbose, remaining_argv).
    Handles --version directly.
    """
    fmt = "json"
    dry_run = False
    quiet = False
    verbose = False
    remaining = []
    i = 0
    while i < len(argv):
        if argv[i] == "--version":
            print(f"clubhouse-sync {config.VERSION}")
            sys.exit(0)
        elif argv[i] == "--dry-run":
            dry_run = True
            i += 1
            continue
        elif argv[i] in ("--quiet", "-q"):
            quiet = True
            i += 1
            continue
        elif argv[i] in ("--verbose", "-v"):
            verbose = True
            i += 1
            continue
        elif argv[i] == "--format" and i + 1 < len(argv):
            fmt = argv[i + 1]
            if fmt not in ("json", "table"):
                raise CliError(f"[ERROR] Invalid format '{fmt}'. Use: json, table")
            i += 2
            continue
        else:
            remaining.append(argv[i])
        i += 1
    if quiet and verbose:
        raise CliError("[ERROR] --quiet and --verbose are mutually exclusive.")
    return fmt, dry_run, quiet, verbose, remaining


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


class _SubcommandParser(argparse.ArgumentParser):
    """Subparser that raises CliError instead of printing full help text."""

    def error(self, message):
        raise CliError(f"[ERROR] {message}")


def _positive_int(value):
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a positive integer") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def build_parser():
    parser = _SubcommandParser(
        prog="clubhouse-sync",
        description="Edit Clubhouse stories as local documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("--help", "-h", action="store_true", dest="show_help")
    sub = parser.add_subparsers(dest="command", parser_class=_SubcommandParser)

    # --- open ---
    p = sub.add_parser("open")
    p.add_argument("story_id", type=_positive_int)
    p.add_argument("file")
    p.add_argument("--force", action="store_true")
    p.set_defaults(func=cmd_open)

    # --- save / refresh ---
    p = sub.add_parser("save")
    p.add_argument("file")
    p.set_defaults(func=cmd_save)

    p = sub.add_parser("refresh")
    p.add_argument("file")
    p.add_argument("--force", action="store_true")
    p.set_defaults(func=cmd_refresh)

    # --- create ---
    p = sub.add_parser("create")
    p.add_argument("org_file")
    p.add_argument("--heading")
    p.add_argument("--project")
    p.add_argument("--epic")
    p.add_argument("--type", dest="story_type", choices=sorted(config.VALID_STORY_TYPES))
    p.add_argument("--state")
    p.add_argument("--labels")
    p.set_defaults(func=cmd_create)

    # --- reference listings ---
    sub.add_parser("projects").set_defaults(func=cmd_projects)
    sub.add_parser("epics").set_defaults(func=cmd_epics)
    sub.add_parser("labels").set_defaults(func=cmd_labels)
    sub.add_parser("states").set_defaults(func=cmd_states)

    # --- version (bare word) ---
    sub.add_parser("version").set_defaults(func=None)

    return parser


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------


def _error_type_from_message(message):
    if message.startswith("[TOKEN_EXPIRED]"):
        return "token_expired"
    if message.startswith("[SETUP_NEEDED]"):
        return "setup_needed"
    if message.startswith("[ERROR]"):
        return "error"
    return "cli_error"


def _emit_cli_error(err, fmt):
    msg = str(err)
    if fmt == "json":
        payload = {
            "ok": False,
            "schema_version": config.CONTRACT_SCHEMA_VERSION,
            "error": {
                "type": _error_type_from_message(msg),
                "message": msg,
                "exit_code": getattr(err, "exit_code", 1),
            },
        }
        print(json.dumps(payload, ensure_ascii=False), file=sys.stderr)
        return
    print(msg, file=sys.stderr)


def main(argv=None):
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")

    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(HELP_TEXT)
        sys.exit(0)

    fmt = "json"
    try:
        # Extract global flags from anywhere in argv
        fmt, dry_run, quiet, verbose, remaining_argv = _extract_global_flags(argv)
        config.RUNTIME_DRY_RUN = dry_run
        config.RUNTIME_QUIET = quiet
        if verbose:
            config.HTTP_LOG_ENABLED = True

        if not remaining_argv:
            print(HELP_TEXT)
            sys.exit(0)

        parser = build_parser()
        ns = parser.parse_args(remaining_argv)
        ns.format = fmt  # inject global format flag

        if ns.show_help or not ns.command:
            print(HELP_TEXT)
            sys.exit(0)

        if ns.command == "version":
            print(f"clubhouse-sync {config.VERSION}")
            sys.exit(0)

        handler = getattr(ns, "func", None)
        if handler:
            handler(ns)
        else:
            raise CliError(f"[ERROR] Unknown command: {ns.command}")

    except CliError as e:
        _emit_cli_error(e, fmt)
        sys.exit(e.exit_code)


if __name__ == "__main__":
    main()

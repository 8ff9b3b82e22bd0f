#!/usr/bin/env python3
"""Utility to inspect and edit a control layout store from the shell."""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from control_layout.engine_config import apply_env_overrides, load_settings
from control_layout.layout_state import open_layout
from control_layout.logging_utils import configure_logging
from control_layout.storage import JsonFileStore

PRESET_KINDS = ("button", "layout")


def _default_store_path() -> Path:
    env = os.environ.get("CONTROL_LAYOUT_STORE_PATH")
    if env:
        return Path(env).expanduser()
    return Path.cwd() / "control_layout_store.json"


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export, import and manage control layout presets")
    parser.add_argument("--store", type=Path, default=_default_store_path(), help="Path to the layout store JSON file")
    parser.add_argument("--settings", type=Path, help="Engine settings JSON (history limit, debug logging)")
    parser.add_argument("--debug", action="store_true", help="Write debug logs to the layout log directory")
    sub = parser.add_subparsers(dest="command", required=True)

    export_cmd = sub.add_parser("export", help="Print the current layout as JSON")
    export_cmd.add_argument("--layout", action="store_true", help="Include position groups and magnetic points")
    export_cmd.add_argument("--ui-groups", action="store_true", help="Include UI groups (implies --layout)")
    export_cmd.add_argument("--output", type=Path, help="Write to this file instead of stdout")

    import_cmd = sub.add_parser("import", help="Validate and apply a layout JSON file")
    import_cmd.add_argument("source", help="Path to a JSON file, or - for stdin")

    list_cmd = sub.add_parser("list", help="List saved presets")
    list_cmd.add_argument("--kind", choices=PRESET_KINDS, default="button")

    save_cmd = sub.add_parser("save", help="Save the current layout as a named preset")
    save_cmd.add_argument("name")
    save_cmd.add_argument("--kind", choices=PRESET_KINDS, default="button")

    apply_cmd = sub.add_parser("apply", help="Apply a saved preset")
    apply_cmd.add_argument("preset_id")

    delete_cmd = sub.add_parser("delete", help="Delete a saved preset")
    delete_cmd.add_argument("preset_id")
    delete_cmd.add_argument("--kind", choices=PRESET_KINDS, default="button")

    sub.add_parser("reset", help="Clear positions, groups and magnetic points")
    return parser.parse_args(argv)


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).expanduser().read_text(encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    store_path = args.store.expanduser().resolve()
    settings = apply_env_overrides(load_settings(args.settings))
    if args.debug or settings.debug:
        configure_logging(debug=True)
    state = open_layout(JsonFileStore(store_path), history_limit=settings.history_limit)
    presets = state.presets

    if args.command == "export":
        include_ui = bool(args.ui_groups)
        text = presets.export_as_text(include_layout=bool(args.layout) or include_ui, include_ui_groups=include_ui)
        if args.output is not None:
            try:
                args.output.write_text(text + "\n", encoding="utf-8")
            except OSError as exc:
                print(f"error: {exc}", file=sys.stderr)
                return 2
            print(f"Exported layout to {args.output}")
        else:
            print(text)
        return 0

    if args.command == "import":
        try:
            text = _read_source(args.source)
        except OSError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        result = presets.import_from_text(text)
        if not result.success:
            print(f"error: {result.error}", file=sys.stderr)
            return 2
        print(f"Imported layout into {store_path}")
        return 0

    if args.command == "list":
        entries = presets.presets(args.kind)
        if not entries:
            print(f"No {args.kind} presets in {store_path}")
        for preset in entries:
            print(f"{preset.id}\t{preset.name}\t{preset.created_at}")
        return 0

    if args.command == "save":
        name = args.name.strip()
        if not name:
            print("error: preset name must not be empty", file=sys.stderr)
            return 2
        preset = presets.create_preset(name, kind=args.kind)
        print(f"Saved {args.kind} preset {preset.id} ({preset.name})")
        return 0

    if args.command == "apply":
        if presets.get_preset(args.preset_id) is None:
            print(f"error: unknown preset {args.preset_id}", file=sys.stderr)
            return 2
        if not presets.apply_preset(args.preset_id):
            print(f"error: failed to apply {args.preset_id}", file=sys.stderr)
            return 2
        print(f"Applied preset {args.preset_id}")
        return 0

    if args.command == "delete":
        if not presets.delete_preset(args.preset_id, kind=args.kind):
            print(f"error: unknown {args.kind} preset {args.preset_id}", file=sys.stderr)
            return 2
        print(f"Deleted preset {args.preset_id}")
        return 0

    if args.command == "reset":
        if not presets.reset_all():
            print(f"error: failed to reset {store_path}", file=sys.stderr)
            return 2
        print(f"Reset layout in {store_path}")
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())

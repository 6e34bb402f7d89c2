from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config.models import Settings, load_settings
from .core.models import Diagnostic, Severity
from .session import Session
from .utils.io import dump_json, write_text
from .utils.trace import configure_trace, log_event


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fraglens",
        description="Live structure preview and diagnostics for SELFIES and smiles-js files.",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"fraglens {__version__}",
        help="Show version and exit",
    )

    config_parent = argparse.ArgumentParser(add_help=False)
    config_parent.add_argument(
        "--config",
        type=str,
        required=False,
        help="Path to settings YAML/JSON",
    )

    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser(
        "serve", parents=[config_parent], help="Run the language server (stdio by default)"
    )
    serve_parser.add_argument(
        "--tcp",
        type=str,
        required=False,
        metavar="HOST:PORT",
        help="Listen on a TCP socket instead of stdio",
    )

    check_parser = subparsers.add_parser(
        "check", parents=[config_parent], help="Print diagnostics for the given files"
    )
    check_parser.add_argument("files", nargs="+", help="SELFIES or smiles-js files")

    resolve_parser = subparsers.add_parser(
        "resolve", parents=[config_parent], help="Resolve one line of a file and print it as JSON"
    )
    resolve_parser.add_argument("file", help="SELFIES or smiles-js file")
    resolve_parser.add_argument("--line", type=int, required=True, help="1-based line number")

    render_parser = subparsers.add_parser(
        "render", parents=[config_parent], help="Render a SMILES string to SVG"
    )
    render_parser.add_argument("notation", help="SMILES string")
    render_parser.add_argument("--out", type=str, required=False, help="Write the SVG here")

    schema_parser = subparsers.add_parser("schema", help="Print the settings JSON Schema")
    schema_parser.add_argument(
        "--out",
        type=str,
        required=False,
        help="Optional path to write the JSON schema",
    )

    return parser


def _setup(config: str | None) -> Settings:
    settings = load_settings(config)
    # stdout belongs to the LSP transport and to command output
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_trace(settings.trace_path)
    return settings


def _parse_tcp(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Expected HOST:PORT, got {value!r}")
    return host or "127.0.0.1", int(port)


def _cmd_serve(settings: Settings, tcp: str | None) -> int:
    try:
        address = _parse_tcp(tcp) if tcp else None
    except ValueError as e:
        sys.stderr.write(f"{e}\n")
        return 2
    from .lsp.server import start_server

    log_event("serve", tcp=tcp)
    start_server(settings, address)
    return 0


def _format_diagnostic(path: str, d: Diagnostic) -> str:
    severity = Severity(d.severity).name.lower()
    code = f" [{d.code}]" if d.code else ""
    return (
        f"{path}:{d.range.start.line + 1}:{d.range.start.character + 1}: "
        f"{severity}: {d.message}{code}"
    )


def _cmd_check(settings: Settings, files: list[str]) -> int:
    session = Session(settings)
    errors = 0
    for name in files:
        try:
            document = session.workspace.load(name)
        except OSError as e:
            sys.stderr.write(f"{name}: cannot read file: {e}\n")
            errors += 1
            continue
        if not document.supported:
            sys.stderr.write(f"{name}: not a SELFIES or smiles-js file, skipped\n")
            continue
        diagnostics = session.synchronizer.update(document) + session.roundtrip.update(document)
        diagnostics.sort(key=lambda d: (d.range.start.line, d.range.start.character))
        for d in diagnostics:
            sys.stdout.write(_format_diagnostic(name, d) + "\n")
        errors += sum(1 for d in diagnostics if d.severity is Severity.ERROR)
    return 1 if errors else 0


def _cmd_resolve(settings: Settings, file: str, line: int) -> int:
    if line < 1:
        sys.stderr.write("--line is 1-based\n")
        return 2
    session = Session(settings)
    try:
        document = session.workspace.load(file)
    except OSError as e:
        sys.stderr.write(f"{file}: cannot read file: {e}\n")
        return 2
    if not document.supported:
        sys.stderr.write(f"{file}: not a SELFIES or smiles-js file\n")
        return 2
    resolved = asyncio.run(session.pipeline.resolve(document, line - 1))
    payload = resolved.to_dict() if resolved is not None else None
    sys.stdout.write(dump_json(payload, indent=2) + "\n")
    return 1 if resolved is not None and resolved.error else 0


def _cmd_render(settings: Settings, notation: str, out: str | None) -> int:
    from .chem.render import render_svg

    preview = settings.preview
    try:
        svg = render_svg(
            notation,
            width=preview.width,
            height=preview.height,
            add_stereo_annotation=preview.stereo_annotations,
        )
    except (ValueError, RuntimeError) as e:
        sys.stderr.write(f"{e}\n")
        return 2
    if out:
        write_text(out, svg)
        sys.stdout.write(f"Wrote SVG to {out}\n")
    else:
        sys.stdout.write(svg + "\n")
    return 0


def _cmd_schema(out: str | None) -> int:
    schema = Settings.json_schema()
    data = dump_json(schema)
    if out:
        Path(out).write_text(data, encoding="utf-8")
        sys.stdout.write(f"Wrote schema to {out}\n")
    else:
        sys.stdout.write(data + "\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "schema":
        return _cmd_schema(args.out)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = _setup(args.config)
    except (OSError, ValueError) as e:
        sys.stderr.write(f"Invalid configuration: {e}\n")
        return 2

    if args.command == "serve":
        return _cmd_serve(settings, args.tcp)
    if args.command == "check":
        return _cmd_check(settings, args.files)
    if args.command == "resolve":
        return _cmd_resolve(settings, args.file, args.line)
    if args.command == "render":
        return _cmd_render(settings, args.notation, args.out)
    parser.print_help()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

"""
Command-line interface.

    owclient [OPTIONS] COMMAND PATH...

Commands: dir, read, write, present, get, size, tree. Results go to stdout,
errors to stderr as ``error_code: message``; any failure makes the exit
status non-zero.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Iterable, Iterator
from typing import Any, TextIO

import yaml
from pydantic import ValidationError

from owclient import __version__
from owclient.client import OwClient
from owclient.config import DeviceFormat, PressureScale, load_config
from owclient.errors import ArgumentError, OwError
from owclient.logging import setup_logging

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="owclient",
        description="Query and change 1-Wire devices through owserver",
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--config", "-c", type=str, help="Path to configuration file"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )
    parser.add_argument(
        "--server", "-s", dest="address", help="owserver address (host:port)"
    )

    temperature = parser.add_mutually_exclusive_group()
    for flag, scale in (("-C", "C"), ("-F", "F"), ("-K", "K"), ("-R", "R")):
        temperature.add_argument(
            flag,
            dest="temperature",
            action="store_const",
            const=scale,
            help=f"Temperature in {scale}",
        )

    parser.add_argument(
        "--pressure",
        choices=[p.value for p in PressureScale],
        help="Pressure scale",
    )
    parser.add_argument(
        "--format",
        "-f",
        dest="device_format",
        choices=[f.value for f in DeviceFormat],
        help="1-Wire id format",
    )
    for name, help_text in (
        ("hex", "Show data as hex and take write values as hex"),
        ("bare", "Hide virtual directories"),
        ("slash", "Mark directories with a trailing /"),
        ("prune", "Hide id-property entries"),
        ("uncached", "Bypass the owserver cache"),
        ("persistence", "Ask owserver for a persistent connection"),
    ):
        parser.add_argument(
            f"--{name}", action="store_const", const=True, default=None, help=help_text
        )
    parser.add_argument(
        "--timeout", type=float, help="Socket timeout in seconds"
    )
    parser.add_argument(
        "--size", type=int, help="Limit data returned by read (in bytes)"
    )
    parser.add_argument(
        "--offset", type=int, help="Byte position read data starts at"
    )

    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("dir", "List directories"),
        ("read", "Read properties"),
        ("present", "Check presence (prints 1 or 0)"),
        ("get", "Read a property or list a directory"),
        ("size", "Show the size a read may return"),
        ("tree", "Show the directory tree"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("paths", nargs="*", default=["/"], metavar="PATH")

    write = sub.add_parser("write", help="Write properties (PATH VALUE pairs)")
    write.add_argument("pairs", nargs="+", metavar="PATH VALUE")

    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Turn parsed options into a nested override dict for load_config."""
    client = {
        key: value
        for key in (
            "address",
            "temperature",
            "pressure",
            "device_format",
            "hex",
            "bare",
            "slash",
            "prune",
            "uncached",
            "persistence",
            "timeout",
            "size",
            "offset",
        )
        if (value := getattr(args, key, None)) is not None
    }
    result: dict[str, Any] = {}
    if client:
        result["client"] = client
    if args.log_level:
        result["logging"] = {"level": args.log_level}
    return result


def _name(path: str) -> str:
    return [segment for segment in path.split("/") if segment][-1] + (
        "/" if path.endswith("/") else ""
    )


def render_tree(
    client: OwClient,
    root: str,
    onerror: Callable[[OwError], None] | None = None,
) -> Iterator[str]:
    """
    Draw the tree below ``root`` with box-drawing characters.

    Lines are yielded as soon as each directory has been listed. With
    ``onerror`` a directory that cannot be listed is reported there and
    drawn empty; without it the error is raised.
    """
    tree = client.walk(root, onerror)
    _, entries = next(tree)
    yield root
    yield from _branch(tree, entries, "")


def _branch(
    tree: Iterator[tuple[str, list[str]]], entries: list[str], prefix: str
) -> Iterator[str]:
    # walk is pre-order, so its next item is the listing of this entry
    for index, entry in enumerate(entries):
        last = index == len(entries) - 1
        yield f"{prefix}{'└── ' if last else '├── '}{_name(entry).rstrip('/')}"
        if entry.endswith("/"):
            _, children = next(tree)
            yield from _branch(tree, children, prefix + ("    " if last else "│   "))


def _run(
    client: OwClient, args: argparse.Namespace, out: TextIO, err: TextIO
) -> int:
    """Run one command; return the number of errors reported without raising."""
    if args.command == "write":
        if len(args.pairs) % 2:
            raise ArgumentError("write needs PATH VALUE pairs")
        pairs = list(zip(args.pairs[::2], args.pairs[1::2], strict=True))
        for path, value in pairs:
            client.write(path, value)
        return 0

    failures: list[OwError] = []

    def report(error: OwError) -> None:
        failures.append(error)
        print(f"{error.error_code}: {error.message}", file=err)

    handlers: dict[str, Callable[[str], Iterable[str]]] = {
        "dir": client.dir,
        "read": lambda p: [client.format_value(client.read(p))],
        "present": lambda p: ["1" if client.present(p) else "0"],
        "size": lambda p: [str(client.size(p))],
        "tree": lambda p: render_tree(client, p, report),
        "get": lambda p: _get_lines(client, p),
    }
    for path in args.paths:
        for line in handlers[args.command](path):
            print(line, file=out)
    return len(failures)


def _get_lines(client: OwClient, path: str) -> list[str]:
    result = client.get(path)
    if result.entries is not None:
        return result.entries
    return [client.format_value(result.data or b"")]


def main(
    argv: list[str] | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """
    Run the command line.

    Returns:
        Process exit status.
    """
    out = out or sys.stdout
    err = err or sys.stderr
    args = build_parser().parse_args(argv)

    try:
        config = load_config(config_path=args.config, overrides=_overrides(args))
    except (ValidationError, yaml.YAMLError, OSError) as e:
        print(f"config: {e}", file=err)
        return EXIT_USAGE

    setup_logging(config.logging)
    client = OwClient.from_config(config)

    try:
        failures = _run(client, args, out, err)
    except OwError as e:
        print(f"{e.error_code}: {e.message}", file=err)
        return EXIT_ERROR
    return EXIT_ERROR if failures else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

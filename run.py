"""Undercroft CLI entry point.

Provides subcommands to print a generated floor, run structural
diagnostics over a batch of seeds, and serve the floor query API.
Accepts configuration via flags and UNDERCROFT_* environment variables,
with optional .env loading.

Run `python run.py --help` for details.
"""

import argparse
import json
import os
import sys
from textwrap import dedent

from colorama import Fore, Style, just_fix_windows_console
from dotenv import load_dotenv

__version__ = "0.1.0"

TILE_COLORS = {
    "#": Fore.WHITE + Style.DIM,
    ".": Style.NORMAL,
    ",": Fore.YELLOW,
    "=": Fore.YELLOW + Style.BRIGHT,
    ":": Fore.BLUE + Style.BRIGHT,
    "'": Fore.GREEN,
    "+": Fore.GREEN + Style.BRIGHT,
    "L": Fore.RED + Style.BRIGHT,
    "S": Fore.MAGENTA,
    "0": Fore.CYAN,
    "I": Fore.CYAN + Style.BRIGHT,
    "<": Fore.GREEN + Style.BRIGHT,
    ">": Fore.RED + Style.BRIGHT,
}

DEFAULT_SEEDS = [1, 2, 3, 292372, 730727]


def parse_args(argv: list) -> argparse.Namespace:
    description = """
    Undercroft floor generator

    Print deterministic dungeon floors, check them for structural problems
    or serve them over HTTP. Generation settings can come from CLI flags or
    UNDERCROFT_* environment variables; CLI flags take precedence.
    """

    epilog = dedent(
        """
        Environment variables:
          UNDERCROFT_WIDTH / UNDERCROFT_HEIGHT   Default floor size (80x50)
          UNDERCROFT_PASSES                      Comma list of post-passes to run
          UNDERCROFT_LOG_LEVEL                   debug, info, warn or error

        Examples:
          # Print depth 3 of run "goblin-king"
          python run.py generate --seed goblin-king --depth 3

          # Check five seeds over the first four depths
          python run.py diagnose --depths 4

          # Load variables from .env then serve the API
          python run.py --env-file .env serve --port 8080
        """
    )

    parser = argparse.ArgumentParser(
        prog="undercroft",
        description=dedent(description),
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        help="Path to a .env file to load before processing flags",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Undercroft {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # generate subcommand
    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate one floor and print it",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    gen_parser.add_argument("--seed", default=None, help="Run seed, digits or any name (default: random)")
    gen_parser.add_argument("--depth", type=int, default=1, help="Floor depth, 1-based (default: 1)")
    gen_parser.add_argument("--width", type=int, default=None, help="Floor width (default: env or 80)")
    gen_parser.add_argument("--height", type=int, default=None, help="Floor height (default: env or 50)")
    gen_parser.add_argument("--kind", default=None, help="Generator kind (default: chosen by depth)")
    gen_parser.add_argument("--json", action="store_true", help="Print the floor as JSON instead of a map")
    gen_parser.add_argument("--no-color", dest="no_color", action="store_true", help="Disable ANSI colours")
    gen_parser.set_defaults(command="generate")

    # diagnose subcommand
    diag_parser = subparsers.add_parser(
        "diagnose",
        help="Generate several floors and check structural invariants",
        formatter_class=argparse.RawTextHelpFormatter,
        description="Exits with status 1 if any floor fails a check.",
    )
    diag_parser.add_argument("seeds", nargs="*", help="Run seeds to check (default: a fixed list)")
    diag_parser.add_argument("--depths", type=int, default=3, help="Check depths 1..N (default: 3)")
    diag_parser.add_argument("--width", type=int, default=48)
    diag_parser.add_argument("--height", type=int, default=32)
    diag_parser.set_defaults(command="diagnose")

    # serve subcommand
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the floor query HTTP API",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    serve_parser.add_argument("--host", default=None, help="Host interface to bind (default: env HOST or 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: env PORT or 5000)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    serve_parser.set_defaults(command="serve")

    # If no subcommand provided, default to generate; it goes after the
    # top-level options so that `undercroft --seed 5` still parses
    argv = list(argv)
    i = 0
    while i < len(argv) and (argv[i] == "--env-file" or argv[i].startswith("--env-file=")):
        i += 1 if "=" in argv[i] else 2
    if i >= len(argv) or argv[i] not in ("generate", "diagnose", "serve", "-h", "--help", "--version"):
        argv.insert(min(i, len(argv)), "generate")

    return parser.parse_args(argv)


def render_map(rows, color: bool) -> str:
    if not color:
        return "\n".join(rows)
    out = []
    for row in rows:
        out.append("".join(f"{TILE_COLORS.get(ch, '')}{ch}{Style.RESET_ALL}" for ch in row))
    return "\n".join(out)


def cmd_generate(args) -> int:
    from undercroft.dungeon import Floor, GenerationError, load_config, summarize

    try:
        config = load_config(width=args.width, height=args.height)
        floor = Floor(args.seed, depth=args.depth, kind=args.kind, config=config)
    except ValueError as exc:
        print(f"{Fore.RED}error:{Style.RESET_ALL} {exc}", file=sys.stderr)
        return 2
    except GenerationError as exc:
        print(f"{Fore.RED}generation failed:{Style.RESET_ALL} {exc}", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps({"seed": floor.run_seed, "depth": floor.depth, "grid": floor.grid.to_dict()}, indent=2))
        return 0
    color = not args.no_color and sys.stdout.isatty()
    print(render_map(floor.grid.to_ascii(), color))
    print()
    print(f"seed={floor.run_seed} depth={floor.depth}")
    print(summarize(floor.metrics))
    return 0


def check_floor(seed, depth: int, width: int, height: int) -> dict:
    """Build one floor twice and report which structural checks fail."""
    from undercroft.dungeon import Floor, GenerationError, load_config

    try:
        config = load_config(width=width, height=height)
        first = Floor(seed, depth=depth, config=config)
        second = Floor(seed, depth=depth, config=config)
    except (ValueError, GenerationError) as exc:
        return {"seed": seed, "depth": depth, "ok": False, "error": str(exc)}
    grid = first.grid
    path = grid.shortest_path(grid.entrance, grid.exit)
    corner_cuts = 0
    for (ax, ay), (bx, by) in zip(path or [], (path or [])[1:]):
        if ax != bx and ay != by and not (grid.is_passable(ax, by) or grid.is_passable(bx, ay)):
            corner_cuts += 1
    issues = {
        "stairs_unreachable": int(path is None),
        "corner_cuts": corner_cuts,
        "nondeterministic": int(grid.fingerprint() != second.grid.fingerprint()),
        "not_frozen": int(not grid.frozen),
    }
    return {
        "seed": seed,
        "depth": depth,
        "kind": first.kind,
        "issues": issues,
        "ok": all(v == 0 for v in issues.values()),
    }


def cmd_diagnose(args) -> int:
    seeds = args.seeds or DEFAULT_SEEDS
    results = [check_floor(s, d, args.width, args.height) for s in seeds for d in range(1, args.depths + 1)]
    print(json.dumps({"results": results}, indent=2))
    # Non-zero exit if any failure
    if not all(r["ok"] for r in results):
        return 1
    return 0


def cmd_serve(args) -> int:
    from undercroft import create_app
    from undercroft.logging_utils import log

    host = args.host or os.getenv("HOST", "127.0.0.1")
    port = int(args.port or os.getenv("PORT", "5000"))
    title = f"{Fore.CYAN}{Style.BRIGHT}Undercroft floor API{Style.RESET_ALL}"
    divider = Fore.MAGENTA + "=" * 40 + Style.RESET_ALL
    print("\n".join([divider, f"  {title}", divider, f"  {Fore.YELLOW}Host:{Style.RESET_ALL} {host}",
                     f"  {Fore.YELLOW}Port:{Style.RESET_ALL} {port}", divider, ""]))
    log.info(event="server_start", host=host, port=port)
    create_app().run(host=host, port=port, debug=args.debug)
    return 0


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = parse_args(argv)
    # Load .env if requested, otherwise the default one if present
    if getattr(args, "env_file", None):
        load_dotenv(args.env_file)
    else:
        load_dotenv()
    just_fix_windows_console()
    handlers = {"generate": cmd_generate, "diagnose": cmd_diagnose, "serve": cmd_serve}
    return handlers[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

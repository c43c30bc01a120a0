"""Command line front end.

Usage::

    mbarewrite obfuscate "x + y" --width 32 --printer rust
    mbarewrite obfuscate "x + y" --op "x & y" --op "x ^ y" --no-randomize
    mbarewrite solve system.txt --width 8 --printer tex
    mbarewrite normalize "((x&y))^!z"

Exit status is 0 on success, 1 for invalid input or an unsolvable request and
2 for internal errors.
"""

from __future__ import annotations

import argparse
import pathlib
import sys

from mbarewrite import __version__
from mbarewrite.core import (
    LoggerConfigurator,
    MBAConfiguration,
    Width,
    configure_loggers,
    getLogger,
)
from mbarewrite.core.bits import BitVectorRing
from mbarewrite.errors import MBAError, MBAInternalError, Unsolvable
from mbarewrite.mba.congruence import CongruenceSolver
from mbarewrite.mba.engine import ObfuscationRequest, obfuscate
from mbarewrite.mba.parser import normalize_operation, parse_system
from mbarewrite.mba.printer import Printer, TraceView, render_trace

logger = getLogger(__name__)

EXIT_OK = 0
EXIT_USER_ERROR = 1
EXIT_INTERNAL_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mbarewrite",
        description="Rewrite linear mixed boolean-arithmetic expressions over Z/2^w.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=None,
        help="Options file (default: $MBAREWRITE_HOME/options.json or ~/.mbarewrite/options.json).",
    )
    parser.add_argument(
        "--log-dir",
        type=pathlib.Path,
        default=None,
        help="Directory for the log file (default: the configured log_dir).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Level for the mbarewrite loggers: DEBUG, INFO, WARNING, ERROR.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    obf = subparsers.add_parser("obfuscate", help="Rewrite an expression.")
    obf.add_argument("expression", help='Linear MBA expression, e.g. "x + y".')
    obf.add_argument("-w", "--width", default=None, help="Bit width: 8, 16, 32, 64 or 128.")
    obf.add_argument(
        "--op",
        dest="operations",
        action="append",
        default=None,
        help="Rewrite operation (repeatable). Random operations are used when omitted.",
    )
    obf.add_argument(
        "--randomize",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Pick a random solution instead of the canonical one.",
    )
    obf.add_argument(
        "-p",
        "--printer",
        default=None,
        choices=[p.value for p in Printer],
        help="Output format.",
    )
    obf.add_argument("--rewrite-count", type=int, default=None, help="Number of random operations.")
    obf.add_argument("--rewrite-depth", type=int, default=None, help="Maximum depth of random operations.")
    obf.add_argument("--aux-vars", type=int, default=None, help="Number of auxiliary variables.")
    obf.add_argument("--max-tries", type=int, default=None, help="Random operation sets to try.")
    obf.add_argument("--seed", type=int, default=None, help="Seed for reproducible output.")
    obf.add_argument(
        "--verify",
        action="store_true",
        help="Prove the result equivalent to the input with Z3.",
    )

    solve = subparsers.add_parser(
        "solve",
        help="Solve a system of linear congruences and show every step.",
    )
    solve.add_argument(
        "file",
        nargs="?",
        default="-",
        help="Augmented matrix, one row per line: coefficients then right-hand side (default: stdin).",
    )
    solve.add_argument("-w", "--width", default=None, help="Bit width: 8, 16, 32, 64 or 128.")
    solve.add_argument(
        "-p",
        "--printer",
        default=Printer.TEXT.value,
        choices=[Printer.TEXT.value, Printer.TEX.value],
        help="Trace format.",
    )

    norm = subparsers.add_parser("normalize", help="Print the canonical form of operations.")
    norm.add_argument("operations", nargs="+", help="Boolean-only operation text.")
    return parser


def _print_trace(view: TraceView) -> None:
    for title, text in view.stages():
        if text:
            print(f"{title}:")
            print(text)
            print()


def _run_obfuscate(args: argparse.Namespace, config: MBAConfiguration) -> int:
    defaults = config.obfuscation_defaults()
    request = ObfuscationRequest.from_defaults(
        args.expression,
        defaults,
        width=args.width,
        operations=args.operations,
        randomize=args.randomize,
        printer=args.printer,
        rewrite_count=args.rewrite_count,
        rewrite_depth=args.rewrite_depth,
        aux_vars=args.aux_vars,
        max_tries=args.max_tries,
        seed=args.seed,
        verify=args.verify or None,
    )
    print(obfuscate(request))
    return EXIT_OK


def _run_solve(args: argparse.Namespace, config: MBAConfiguration) -> int:
    width = args.width if args.width is not None else config.obfuscation_defaults().width
    ring = BitVectorRing(Width.from_value(width))
    if args.file == "-":
        text = sys.stdin.read()
    else:
        text = pathlib.Path(args.file).read_text(encoding="utf-8")

    matrix, rhs = parse_system(text, ring)
    try:
        result = CongruenceSolver(matrix, rhs).solve()
    except Unsolvable as e:
        _print_trace(render_trace(e.trace, args.printer))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USER_ERROR
    _print_trace(render_trace(result.trace, args.printer))
    return EXIT_OK


def _run_normalize(args: argparse.Namespace, config: MBAConfiguration) -> int:
    for text in args.operations:
        print(normalize_operation(text))
    return EXIT_OK


_COMMANDS = {
    "obfuscate": _run_obfuscate,
    "solve": _run_solve,
    "normalize": _run_normalize,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = MBAConfiguration(args.config)
    log_dir = args.log_dir if args.log_dir is not None else config.log_dir
    configure_loggers(log_dir)
    if args.log_level:
        try:
            for name in LoggerConfigurator.available_loggers("mbarewrite"):
                LoggerConfigurator.set_level(name, args.log_level)
        except ValueError as e:
            parser.error(str(e))

    try:
        return _COMMANDS[args.command](args, config)
    except MBAInternalError as e:
        logger.error("Internal error: %s", e, exc_info=True)
        print(f"internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR
    except (MBAError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USER_ERROR


if __name__ == "__main__":
    sys.exit(main())

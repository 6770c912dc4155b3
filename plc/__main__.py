"""CLI entry point for the PLC interpreter.

Usage:
    python -m plc [-v|-vv|-vvv] <program_file>
    python -m plc --tokens <program_file>
    python -m plc --ast <program_file>
    python -m plc --no-analyze <program_file>

Options:
  -v            Increase debug verbosity (can be repeated)
  --tokens      Print the token list and exit
  --ast         Print the parsed AST and exit
  --no-analyze  Run the program without static analysis

Debug information is written to `debug.txt` in the current directory when
verbosity is greater than zero. The value returned by `main` is printed
after the program finishes.

Exit codes: 0 success, 1 missing file, 2 lex/parse error, 3 analysis
error, 4 runtime error.
"""

import argparse
import sys
from pathlib import Path
from pprint import pprint

from .analyzer import analyze
from .errors import AnalysisError, LexError, ParseError, PlcRuntimeError
from .interpreter import run
from .lexer import tokenize
from .parser import parse
from .types import to_string


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="PLC language interpreter")
    parser.add_argument('-v', action='count', default=0, help='increase debug verbosity (can be repeated)')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--tokens', action='store_true', help='print tokens and exit')
    group.add_argument('--ast', action='store_true', help='print the parsed AST and exit')
    parser.add_argument('--no-analyze', action='store_true', help='skip static analysis')
    parser.add_argument('program', help='PLC program file to execute')
    args = parser.parse_args(argv)

    program_file = Path(args.program)
    if not program_file.exists():
        print(f"Error: file {program_file} not found", file=sys.stderr)
        sys.exit(1)
    source = program_file.read_text(encoding='utf-8')

    try:
        tokens = tokenize(source)
        if args.tokens:
            for token in tokens:
                print(f"{token.start_pos}\t{token.type}\t{token}")
            return
        tree = parse(tokens)
    except (LexError, ParseError) as e:
        print(f"Syntax error: {e}", file=sys.stderr)
        sys.exit(2)
    if args.ast:
        pprint(tree)
        return

    debug_fp = open('debug.txt', 'w', encoding='utf-8') if args.v > 0 else None
    try:
        if not args.no_analyze:
            analyze(tree, debug_level=args.v, debug_out=debug_fp)
        result = run(tree, debug_level=args.v, debug_out=debug_fp)
    except AnalysisError as e:
        print(f"Analysis error: {e}", file=sys.stderr)
        sys.exit(3)
    except PlcRuntimeError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        sys.exit(4)
    finally:
        if debug_fp:
            debug_fp.close()
    print(to_string(result))


if __name__ == '__main__':
    main()

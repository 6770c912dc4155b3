# PLC language package
# Tokenizer, parser, static analyzer and tree-walking interpreter.
from .lexer import tokenize
from .parser import parse
from .analyzer import analyze, Analyzer
from .interpreter import run, Interpreter
from .errors import PlcError, LexError, ParseError, AnalysisError, PlcRuntimeError


def run_program(source: str, check: bool = True):
    """Tokenize, parse, analyze (unless `check` is false) and run source text.

    Returns the host value produced by `main`.
    """
    tree = parse(tokenize(source))
    if check:
        analyze(tree)
    return run(tree).value


__all__ = [
    'tokenize',
    'parse',
    'analyze',
    'run',
    'run_program',
    'Analyzer',
    'Interpreter',
    'PlcError',
    'LexError',
    'ParseError',
    'AnalysisError',
    'PlcRuntimeError',
]

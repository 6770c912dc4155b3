from typing import Optional

from lark.exceptions import LexError as LarkLexError, ParseError as LarkParseError


class PlcError(Exception):
    """Base class for every error raised by the PLC toolchain."""


class _OffsetError(PlcError):
    def __init__(self, message: str, index: int):
        super().__init__(f"{message} at index {index}")
        self.message = message
        self.index = index


class LexError(_OffsetError, LarkLexError):
    """Malformed token; `index` is the offending source offset."""


class ParseError(_OffsetError, LarkParseError):
    """Grammar violation; `index` is the offending token's source offset."""


class ScopeError(PlcError):
    """Undefined or duplicate name in a scope or the type registry."""


class AnalysisError(PlcError):
    """Static scope or type violation found by the analyzer."""


class PlcRuntimeError(PlcError):
    """Fatal error raised while executing a program."""


class ReturnSignal:
    """Result of executing a RETURN statement.

    Statement execution hands this back instead of raising, and every
    enclosing block passes it up unchanged until the function-call
    boundary turns it into the call's result.
    """
    __slots__ = ('value',)

    def __init__(self, value: Optional[object]):
        self.value = value

    def __repr__(self) -> str:
        return f"ReturnSignal({self.value!r})"

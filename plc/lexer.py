"""Tokenizer for PLC source text.

`tokenize` turns raw text into a materialized list of `lark.Token`s. The
kind of each token is decided by its first character:

* a letter or underscore starts an IDENTIFIER (keywords included);
* a digit, or a sign followed by a digit, starts an INTEGER or DECIMAL;
* a single quote starts a CHARACTER, a double quote a STRING;
* anything else must be one of the recognized OPERATOR symbols.

Each token's text is the exact source slice it was read from, so joining
the tokens gives back the input with its whitespace removed.
"""

from __future__ import annotations

from typing import List

from lark import Token

from .errors import LexError

IDENTIFIER = 'IDENTIFIER'
INTEGER = 'INTEGER'
DECIMAL = 'DECIMAL'
CHARACTER = 'CHARACTER'
STRING = 'STRING'
OPERATOR = 'OPERATOR'

WHITESPACE = ' \b\n\r\t'
ESCAPES = 'bnrt\'"\\'
SINGLE_OPERATORS = '+-*/(),.:;<>='
COMPARISON_STARTS = '<>!='


def _is_identifier_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == '_')


def _is_identifier_part(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c in '_-')


def _is_digit(c: str) -> bool:
    return '0' <= c <= '9'


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.start = 0

    def has(self, offset: int = 0) -> bool:
        return self.pos + offset < len(self.text)

    def get(self, offset: int = 0) -> str:
        return self.text[self.pos + offset]

    def emit(self, kind: str) -> Token:
        return Token(kind, self.text[self.start:self.pos], self.start)

    def lex(self) -> List[Token]:
        tokens: List[Token] = []
        while self.has():
            if self.get() in WHITESPACE:
                self.pos += 1
                continue
            tokens.append(self.lex_token())
        return tokens

    def lex_token(self) -> Token:
        self.start = self.pos
        c = self.get()
        if _is_identifier_start(c):
            return self.lex_identifier()
        if _is_digit(c) or (c in '+-' and self.has(1) and _is_digit(self.get(1))):
            return self.lex_number()
        if c == '\'':
            return self.lex_character()
        if c == '"':
            return self.lex_string()
        return self.lex_operator()

    def lex_identifier(self) -> Token:
        self.pos += 1
        while self.has() and _is_identifier_part(self.get()):
            self.pos += 1
        return self.emit(IDENTIFIER)

    def lex_number(self) -> Token:
        if self.get() in '+-':
            self.pos += 1
        while self.has() and _is_digit(self.get()):
            self.pos += 1
        if not (self.has(1) and self.get() == '.' and _is_digit(self.get(1))):
            return self.emit(INTEGER)
        self.pos += 1
        while self.has() and _is_digit(self.get()):
            self.pos += 1
        if self.has(1) and self.get() == '.' and _is_digit(self.get(1)):
            raise LexError("unexpected second '.' in number", self.pos)
        return self.emit(DECIMAL)

    def lex_character(self) -> Token:
        self.pos += 1
        if not self.has() or self.get() in '\'\n\r':
            raise LexError('empty or unterminated character literal', self.pos)
        self.lex_literal_char()
        if not self.has() or self.get() != '\'':
            raise LexError('unterminated character literal', self.pos)
        self.pos += 1
        return self.emit(CHARACTER)

    def lex_string(self) -> Token:
        self.pos += 1
        while self.has() and self.get() != '"':
            if self.get() in '\n\r':
                raise LexError('unterminated string literal', self.pos)
            self.lex_literal_char()
        if not self.has():
            raise LexError('unterminated string literal', self.pos)
        self.pos += 1
        return self.emit(STRING)

    def lex_literal_char(self) -> None:
        if self.get() == '\\':
            self.lex_escape()
        else:
            self.pos += 1

    def lex_escape(self) -> None:
        self.pos += 1
        if not self.has():
            raise LexError('unterminated escape sequence', self.pos)
        if self.get() not in ESCAPES:
            raise LexError(f"invalid escape sequence '\\{self.get()}'", self.pos)
        self.pos += 1

    def lex_operator(self) -> Token:
        c = self.get()
        if c in COMPARISON_STARTS and self.has(1) and self.get(1) == '=':
            self.pos += 2
            return self.emit(OPERATOR)
        if c in SINGLE_OPERATORS:
            self.pos += 1
            return self.emit(OPERATOR)
        raise LexError(f"unexpected character {c!r}", self.pos)


def tokenize(text: str) -> List[Token]:
    """Convert source text into a list of tokens."""
    return Lexer(text).lex()

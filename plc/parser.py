"""Recursive-descent parser for PLC.

Each grammar rule has its own `parse_*` method; a reference to another rule
is a call to that method. Binary operators are layered loosest first:

    logical (AND OR) < comparison (< <= > >= == !=) < additive (+ -)
        < multiplicative (* /) < secondary (.name, .name(args)) < primary

Every layer is left-associative. The parser looks at most a couple of
tokens ahead and never backtracks.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Tuple

from lark import Token

from . import ast
from .errors import ParseError
from .lexer import CHARACTER, DECIMAL, IDENTIFIER, INTEGER, STRING
from .types import Char

KEYWORDS = {
    'LET', 'DEF', 'DO', 'END', 'IF', 'ELSE', 'FOR', 'IN', 'WHILE', 'RETURN',
    'TRUE', 'FALSE', 'NIL', 'AND', 'OR',
}
TOKEN_KINDS = {IDENTIFIER, INTEGER, DECIMAL, CHARACTER, STRING, 'OPERATOR'}
COMPARISON_OPERATORS = ('<', '<=', '>', '>=', '==', '!=')
ESCAPES = {'b': '\b', 'n': '\n', 'r': '\r', 't': '\t', '\'': '\'', '"': '"', '\\': '\\'}


def decode_escapes(text: str, index: int = 0) -> str:
    """Replace the escape sequences of a literal body with their characters.

    `index` is the source offset of `text`, used to place errors.
    """
    result: List[str] = []
    i = 0
    while i < len(text):
        c = text[i]
        if c == '\\' and i + 1 < len(text):
            if text[i + 1] not in ESCAPES:
                raise ParseError(f"invalid escape sequence \\{text[i + 1]}", index + i)
            result.append(ESCAPES[text[i + 1]])
            i += 2
            continue
        result.append(c)
        i += 1
    return ''.join(result)


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = list(tokens)
        self.pos = 0

    # Token stream helpers

    def has(self, offset: int = 0) -> bool:
        return self.pos + offset < len(self.tokens)

    def get(self, offset: int = 0) -> Token:
        return self.tokens[self.pos + offset]

    def peek(self, *patterns: str) -> bool:
        """True if the next tokens match the patterns.

        A pattern that names a token kind matches on `token.type`; any other
        pattern matches on the token's literal text.
        """
        for i, pattern in enumerate(patterns):
            if not self.has(i):
                return False
            token = self.get(i)
            if pattern in TOKEN_KINDS:
                if token.type != pattern:
                    return False
            elif str(token) != pattern:
                return False
        return True

    def match(self, *patterns: str) -> bool:
        if self.peek(*patterns):
            self.pos += len(patterns)
            return True
        return False

    def error_index(self) -> int:
        if self.has():
            return self.get().start_pos
        if not self.tokens:
            return 0
        last = self.tokens[-1]
        return last.start_pos + len(last)

    def error(self, message: str) -> ParseError:
        if self.has():
            message = f"{message}, got {str(self.get())!r}"
        else:
            message = f"{message}, got end of input"
        return ParseError(message, self.error_index())

    @staticmethod
    def decode_literal(token: Token) -> str:
        """Strip the quotes of a character or string token and decode it."""
        return decode_escapes(str(token)[1:-1], (token.start_pos or 0) + 1)

    def require(self, pattern: str, description: Optional[str] = None) -> Token:
        if not self.peek(pattern):
            raise self.error(f"expected {description or repr(pattern)}")
        self.pos += 1
        return self.get(-1)

    def require_name(self, description: str = 'identifier') -> str:
        if not self.peek(IDENTIFIER) or str(self.get()) in KEYWORDS:
            raise self.error(f"expected {description}")
        self.pos += 1
        return str(self.get(-1))

    # Top level

    def parse_source(self) -> ast.Source:
        fields: List[ast.Field] = []
        methods: List[ast.Method] = []
        while self.peek('LET'):
            fields.append(self.parse_field())
        while self.peek('DEF'):
            methods.append(self.parse_method())
        if self.has():
            raise self.error("expected 'LET', 'DEF' or end of input")
        return ast.Source(fields, methods)

    def parse_field(self) -> ast.Field:
        self.require('LET')
        name, type_name, value = self.parse_declaration_body()
        return ast.Field(name, type_name, value)

    def parse_declaration_body(self) -> Tuple[str, Optional[str], Optional[ast.Expr]]:
        name = self.require_name('variable name')
        type_name = None
        value = None
        if self.match(':'):
            type_name = self.require_name('type name')
        if self.match('='):
            value = self.parse_expression()
        self.require(';')
        return name, type_name, value

    def parse_method(self) -> ast.Method:
        self.require('DEF')
        name = self.require_name('method name')
        self.require('(')
        parameters: List[str] = []
        parameter_type_names: List[str] = []
        if not self.peek(')'):
            while True:
                parameters.append(self.require_name('parameter name'))
                self.require(':')
                parameter_type_names.append(self.require_name('parameter type'))
                if not self.match(','):
                    break
        self.require(')', "',' or ')'")
        return_type_name = None
        if self.match(':'):
            return_type_name = self.require_name('return type')
        self.require('DO')
        statements = self.parse_block('END')
        self.require('END')
        return ast.Method(name, parameters, parameter_type_names, return_type_name, statements)

    def parse_block(self, *terminators: str) -> List[ast.Stmt]:
        statements: List[ast.Stmt] = []
        while not any(self.peek(t) for t in terminators):
            if not self.has():
                raise self.error(f"expected {' or '.join(repr(t) for t in terminators)}")
            statements.append(self.parse_statement())
        return statements

    # Statements

    def parse_statement(self) -> ast.Stmt:
        if self.peek('LET'):
            return self.parse_declaration_statement()
        if self.peek('IF'):
            return self.parse_if_statement()
        if self.peek('FOR'):
            return self.parse_for_statement()
        if self.peek('WHILE'):
            return self.parse_while_statement()
        if self.peek('RETURN'):
            return self.parse_return_statement()
        expression = self.parse_expression()
        if self.match('='):
            value = self.parse_expression()
            self.require(';')
            return ast.Assignment(expression, value)
        self.require(';')
        return ast.ExpressionStmt(expression)

    def parse_declaration_statement(self) -> ast.Declaration:
        self.require('LET')
        name, type_name, value = self.parse_declaration_body()
        return ast.Declaration(name, type_name, value)

    def parse_if_statement(self) -> ast.If:
        self.require('IF')
        condition = self.parse_expression()
        self.require('DO')
        then_statements = self.parse_block('ELSE', 'END')
        else_statements: List[ast.Stmt] = []
        if self.match('ELSE'):
            else_statements = self.parse_block('END')
        self.require('END')
        return ast.If(condition, then_statements, else_statements)

    def parse_for_statement(self) -> ast.For:
        self.require('FOR')
        name = self.require_name('loop variable')
        self.require('IN')
        value = self.parse_expression()
        self.require('DO')
        statements = self.parse_block('END')
        self.require('END')
        return ast.For(name, value, statements)

    def parse_while_statement(self) -> ast.While:
        self.require('WHILE')
        condition = self.parse_expression()
        self.require('DO')
        statements = self.parse_block('END')
        self.require('END')
        return ast.While(condition, statements)

    def parse_return_statement(self) -> ast.Return:
        self.require('RETURN')
        value = self.parse_expression()
        self.require(';')
        return ast.Return(value)

    # Expressions

    def parse_expression(self) -> ast.Expr:
        return self.parse_logical_expression()

    def parse_binary(self, operand, operators) -> ast.Expr:
        left = operand()
        while any(self.peek(op) for op in operators):
            operator = str(self.get())
            self.pos += 1
            right = operand()
            left = ast.Binary(operator, left, right)
        return left

    def parse_logical_expression(self) -> ast.Expr:
        return self.parse_binary(self.parse_comparison_expression, ('AND', 'OR'))

    def parse_comparison_expression(self) -> ast.Expr:
        return self.parse_binary(self.parse_additive_expression, COMPARISON_OPERATORS)

    def parse_additive_expression(self) -> ast.Expr:
        return self.parse_binary(self.parse_multiplicative_expression, ('+', '-'))

    def parse_multiplicative_expression(self) -> ast.Expr:
        return self.parse_binary(self.parse_secondary_expression, ('*', '/'))

    def parse_secondary_expression(self) -> ast.Expr:
        expression = self.parse_primary_expression()
        while self.match('.'):
            name = self.require_name('field or method name')
            if self.match('('):
                expression = ast.Function(expression, name, self.parse_arguments())
            else:
                expression = ast.Access(expression, name)
        return expression

    def parse_arguments(self) -> List[ast.Expr]:
        # the opening '(' has been consumed
        arguments: List[ast.Expr] = []
        if self.match(')'):
            return arguments
        while True:
            arguments.append(self.parse_expression())
            if self.match(')'):
                return arguments
            self.require(',', "',' or ')'")
            if self.peek(')'):
                raise self.error('trailing comma in argument list')

    def parse_primary_expression(self) -> ast.Expr:
        if self.match('NIL'):
            return ast.Literal(None)
        if self.match('TRUE'):
            return ast.Literal(True)
        if self.match('FALSE'):
            return ast.Literal(False)
        if self.match(INTEGER):
            return ast.Literal(int(self.get(-1)))
        if self.match(DECIMAL):
            return ast.Literal(Decimal(str(self.get(-1))))
        if self.match(CHARACTER):
            return ast.Literal(Char(self.decode_literal(self.get(-1))))
        if self.match(STRING):
            return ast.Literal(self.decode_literal(self.get(-1)))
        if self.match('('):
            expression = self.parse_expression()
            self.require(')', "closing ')'")
            return ast.Group(expression)
        if self.peek(IDENTIFIER) and str(self.get()) not in KEYWORDS:
            name = str(self.get())
            self.pos += 1
            if self.match('('):
                return ast.Function(None, name, self.parse_arguments())
            return ast.Access(None, name)
        raise self.error('expected expression')


def parse(tokens: List[Token]) -> ast.Source:
    """Parse a token list into a Source AST."""
    return Parser(tokens).parse_source()


def parse_expression(tokens: List[Token]) -> ast.Expr:
    """Parse a token list holding exactly one expression."""
    parser = Parser(tokens)
    expression = parser.parse_expression()
    if parser.has():
        raise parser.error('expected end of expression')
    return expression


def parse_statement(tokens: List[Token]) -> ast.Stmt:
    """Parse a token list holding exactly one statement."""
    parser = Parser(tokens)
    statement = parser.parse_statement()
    if parser.has():
        raise parser.error('expected end of statement')
    return statement

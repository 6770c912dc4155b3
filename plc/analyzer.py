"""Static semantic analysis for PLC.

The analyzer walks a parsed `Source` once, resolving every name against a
chain of scopes and checking every expression's type. It writes the
results back onto the tree: each expression gets its `type`, each access
its `variable` and each call its `function`. The first violation raises
an `AnalysisError`; there is no recovery.
"""

from __future__ import annotations

import math
import sys
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional, TextIO

from . import ast
from .environment import Scope
from .errors import AnalysisError, ScopeError
from .types import (
    ANY, BOOLEAN, CHARACTER, COMPARABLE, DECIMAL, INTEGER, INTEGER_ITERABLE, NIL,
    STRING, Char, NIL_VALUE, Type, get_type,
)

INT_MIN = -2 ** 31
INT_MAX = 2 ** 31 - 1
COMPARABLE_TYPES = (COMPARABLE, INTEGER, DECIMAL, CHARACTER, STRING)
COMPARISON_OPERATORS = ('<', '<=', '>', '>=', '==', '!=')


def require_assignable(target: Type, type: Type) -> None:
    """Fail unless a value of `type` may be stored where `target` is expected."""
    if target is type or target is ANY or target is COMPARABLE:
        return
    raise AnalysisError(f"type mismatch: expected {target}, received {type}")


@contextmanager
def _semantic_errors() -> Iterator[None]:
    try:
        yield
    except ScopeError as e:
        raise AnalysisError(str(e)) from e


class Analyzer:
    """Type-checks a PLC program and annotates its AST."""
    def __init__(self, parent: Optional[Scope] = None, debug_level: int = 0,
                 debug_out: Optional[TextIO] = None):
        self.scope = Scope(parent)
        self.scope.define_function('print', 1, [ANY], NIL, lambda args: NIL_VALUE)
        self.method: Optional[ast.Method] = None
        self.debug_level = debug_level
        self.debug_out = debug_out

    def debug(self, msg: str, level: int = 1):
        if self.debug_level >= level:
            print(f"[analyzer] {msg}", file=self.debug_out or sys.stdout)

    @contextmanager
    def child_scope(self) -> Iterator[Scope]:
        previous = self.scope
        self.scope = previous.child()
        try:
            yield self.scope
        finally:
            self.scope = previous

    def get_type(self, name: str) -> Type:
        with _semantic_errors():
            return get_type(name)

    # Public API

    def analyze(self, source: ast.Source) -> ast.Source:
        self.debug('analysis started')
        self.visit_source(source)
        self.debug('analysis finished')
        return source

    # Top level

    def visit_source(self, source: ast.Source) -> None:
        if not any(m.name == 'main' and not m.parameters and m.return_type_name == 'Integer'
                   for m in source.methods):
            raise AnalysisError('no main method: expected DEF main(): Integer')
        for field in source.fields:
            self.visit_field(field)
        for method in source.methods:
            self.visit_method(method)

    def visit_field(self, field: ast.Field) -> None:
        type = self.declared_type(field.name, field.type_name, field.value)
        with _semantic_errors():
            field.variable = self.scope.define_variable(field.name, type, NIL_VALUE)
        self.debug(f"field {field.name}: {type}", 2)

    def declared_type(self, name: str, type_name: Optional[str], value: Optional[ast.Expr]) -> Type:
        if type_name is None and value is None:
            raise AnalysisError(f"declaration of {name} must have a type or a value to infer its type")
        type = self.get_type(type_name) if type_name is not None else None
        if value is not None:
            self.visit_expression(value)
            if type is None:
                type = value.type
            require_assignable(type, value.type)
        return type

    def visit_method(self, method: ast.Method) -> None:
        if len(method.parameters) != len(method.parameter_type_names):
            raise AnalysisError(f"method {method.name} has mismatched parameters and parameter types")
        parameter_types = [self.get_type(name) for name in method.parameter_type_names]
        return_type = self.get_type(method.return_type_name) if method.return_type_name else NIL
        with _semantic_errors():
            method.function = self.scope.define_function(
                method.name, len(method.parameters), parameter_types, return_type,
                lambda args: NIL_VALUE)
        self.debug(f"method {method.name}/{len(method.parameters)} -> {return_type}", 2)
        previous = self.method
        self.method = method
        try:
            with self.child_scope() as scope:
                with _semantic_errors():
                    for name, type in zip(method.parameters, parameter_types):
                        scope.define_variable(name, type, NIL_VALUE)
                for statement in method.statements:
                    self.visit_statement(statement)
        finally:
            self.method = previous

    # Statements

    def visit_statement(self, statement: ast.Stmt) -> None:
        if isinstance(statement, ast.ExpressionStmt):
            self.visit_expression(statement.expression)
            if not isinstance(statement.expression, ast.Function):
                raise AnalysisError('expression statement must be a function call')
            return
        if isinstance(statement, ast.Declaration):
            type = self.declared_type(statement.name, statement.type_name, statement.value)
            with _semantic_errors():
                statement.variable = self.scope.define_variable(statement.name, type, NIL_VALUE)
            self.debug(f"declare {statement.name}: {type}", 2)
            return
        if isinstance(statement, ast.Assignment):
            if not isinstance(statement.receiver, ast.Access):
                raise AnalysisError('assignment target must be a variable or field access')
            self.visit_expression(statement.value)
            self.visit_expression(statement.receiver)
            require_assignable(statement.receiver.type, statement.value.type)
            return
        if isinstance(statement, ast.If):
            self.visit_expression(statement.condition)
            require_assignable(BOOLEAN, statement.condition.type)
            if not statement.then_statements:
                raise AnalysisError('IF statement must have at least one statement in its then branch')
            self.visit_block(statement.then_statements)
            self.visit_block(statement.else_statements)
            return
        if isinstance(statement, ast.For):
            self.visit_expression(statement.value)
            require_assignable(INTEGER_ITERABLE, statement.value.type)
            with self.child_scope() as scope:
                with _semantic_errors():
                    scope.define_variable(statement.name, INTEGER, NIL_VALUE)
                for child in statement.statements:
                    self.visit_statement(child)
            return
        if isinstance(statement, ast.While):
            self.visit_expression(statement.condition)
            require_assignable(BOOLEAN, statement.condition.type)
            self.visit_block(statement.statements)
            return
        if isinstance(statement, ast.Return):
            if self.method is None:
                raise AnalysisError('RETURN outside of a method')
            self.visit_expression(statement.value)
            require_assignable(self.method.function.return_type, statement.value.type)
            return
        raise NotImplementedError(f"visit_statement: unexpected node type {type(statement)}")

    def visit_block(self, statements: List[ast.Stmt]) -> None:
        with self.child_scope():
            for statement in statements:
                self.visit_statement(statement)

    # Expressions

    def visit_expression(self, expression: ast.Expr) -> None:
        if isinstance(expression, ast.Literal):
            expression.type = self.literal_type(expression.literal)
            return
        if isinstance(expression, ast.Group):
            self.visit_expression(expression.expression)
            expression.type = expression.expression.type
            return
        if isinstance(expression, ast.Binary):
            self.visit_expression(expression.left)
            self.visit_expression(expression.right)
            expression.type = self.binary_type(expression.operator, expression.left.type,
                                               expression.right.type)
            return
        if isinstance(expression, ast.Access):
            with _semantic_errors():
                if expression.receiver is not None:
                    self.visit_expression(expression.receiver)
                    expression.variable = expression.receiver.type.get_field(expression.name)
                else:
                    expression.variable = self.scope.lookup_variable(expression.name)
            expression.type = expression.variable.type
            return
        if isinstance(expression, ast.Function):
            self.visit_function(expression)
            return
        raise NotImplementedError(f"visit_expression: unexpected node type {type(expression)}")

    def literal_type(self, literal) -> Type:
        if literal is None:
            return NIL
        if isinstance(literal, bool):
            return BOOLEAN
        if isinstance(literal, int):
            if not INT_MIN <= literal <= INT_MAX:
                raise AnalysisError(f"integer literal {literal} is out of range")
            return INTEGER
        if isinstance(literal, Decimal):
            if not literal.is_finite() or math.isinf(float(literal)):
                raise AnalysisError(f"decimal literal {literal} is out of range")
            return DECIMAL
        if isinstance(literal, Char):
            return CHARACTER
        if isinstance(literal, str):
            return STRING
        raise AnalysisError(f"unsupported literal {literal!r}")

    def binary_type(self, operator: str, left: Type, right: Type) -> Type:
        if operator in ('AND', 'OR'):
            require_assignable(BOOLEAN, left)
            require_assignable(BOOLEAN, right)
            return BOOLEAN
        if operator in COMPARISON_OPERATORS:
            if left not in COMPARABLE_TYPES:
                raise AnalysisError(f"operator {operator} requires a Comparable left operand, received {left}")
            require_assignable(left, right)
            return BOOLEAN
        if operator == '+' and (left is STRING or right is STRING):
            return STRING
        if operator in ('+', '-', '*', '/'):
            if left is not INTEGER and left is not DECIMAL:
                raise AnalysisError(f"operator {operator} requires Integer or Decimal operands, received {left}")
            if right is not left:
                raise AnalysisError(f"operator {operator} requires matching operand types, received {left} and {right}")
            return left
        raise AnalysisError(f"unknown operator {operator}")

    def visit_function(self, call: ast.Function) -> None:
        for argument in call.arguments:
            self.visit_expression(argument)
        with _semantic_errors():
            if call.receiver is not None:
                self.visit_expression(call.receiver)
                call.function = call.receiver.type.get_method(call.name, len(call.arguments))
                parameter_types = call.function.parameter_types[1:]
            else:
                call.function = self.scope.lookup_function(call.name, len(call.arguments))
                parameter_types = call.function.parameter_types
        for parameter_type, argument in zip(parameter_types, call.arguments):
            require_assignable(parameter_type, argument.type)
        call.type = call.function.return_type
        self.debug(f"call {call.name}/{len(call.arguments)} -> {call.type}", 3)


def analyze(source: ast.Source, debug_level: int = 0, debug_out: Optional[TextIO] = None) -> ast.Source:
    """Analyze a Source AST with a fresh Analyzer, annotating it in place."""
    return Analyzer(debug_level=debug_level, debug_out=debug_out).analyze(source)

"""Tree-walking interpreter for PLC.

The interpreter executes a (normally already analyzed) `Source`: fields
are evaluated and bound in the module scope, methods are installed as
closures over that scope, and then `main()` is called. Every expression
evaluates to a `PlcObject`.

RETURN does not raise. Executing a statement yields either `None` or a
`ReturnSignal`; blocks stop at the first signal and hand it up, and the
function-call boundary turns it into the call's result.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from decimal import ROUND_HALF_EVEN, Decimal, DivisionByZero, InvalidOperation, localcontext
from typing import Any, Iterator, List, Optional, TextIO

from . import ast
from .environment import Scope
from .errors import PlcRuntimeError, ReturnSignal, ScopeError
from .types import ANY, NIL, NIL_VALUE, Char, PlcObject, create, to_string, type_of

# each PLC call nests about ten host frames
RECURSION_LIMIT = 5000

COMPARISONS = {
    '<': lambda a, b: a < b,
    '<=': lambda a, b: a <= b,
    '>': lambda a, b: a > b,
    '>=': lambda a, b: a >= b,
}


@contextmanager
def _runtime_errors() -> Iterator[None]:
    try:
        yield
    except ScopeError as e:
        raise PlcRuntimeError(str(e)) from e


KIND_NAMES = {bool: 'Boolean', int: 'Integer', Decimal: 'Decimal', Char: 'Character', str: 'String'}
COMPARABLE_KINDS = ('Integer', 'Decimal', 'Character', 'String')


def require_type(kind, obj: PlcObject, what: str = 'value') -> Any:
    """Return `obj.value` if it is of the host type `kind`, else fail."""
    value = obj.value
    if type_of(value) != KIND_NAMES[kind]:
        raise PlcRuntimeError(f"expected {KIND_NAMES[kind]} {what}, received {type_of(value)}")
    return value


def divide(left: Any, right: Any) -> Any:
    if right == 0:
        raise PlcRuntimeError('division by zero')
    if isinstance(left, Decimal):
        exponent = left.as_tuple().exponent
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, len(left.as_tuple().digits) + len(right.as_tuple().digits) + 28)
            try:
                return (left / right).quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_EVEN)
            except (DivisionByZero, InvalidOperation) as e:
                raise PlcRuntimeError(f"invalid decimal division {left} / {right}") from e
    quotient = abs(left) // abs(right)
    return quotient if (left < 0) == (right < 0) else -quotient


def exact_precision(left: Decimal, right: Decimal) -> int:
    """Digits needed to hold `left op right` exactly for + - and *."""
    a, b = left.as_tuple(), right.as_tuple()
    spread = abs(a.exponent - b.exponent) if left.is_finite() and right.is_finite() else 0
    return len(a.digits) + len(b.digits) + spread + 1


def arithmetic(operator: str, left: Any, right: Any) -> Any:
    if operator == '/':
        return divide(left, right)
    with localcontext() as ctx:
        if isinstance(left, Decimal):
            ctx.prec = max(ctx.prec, exact_precision(left, right))
        if operator == '+':
            return left + right
        if operator == '-':
            return left - right
        return left * right


def equals(left: Any, right: Any) -> bool:
    return type_of(left) == type_of(right) and left == right


class Interpreter:
    """Executes PLC ASTs."""
    def __init__(self, parent: Optional[Scope] = None, debug_level: int = 0,
                 debug_out: Optional[TextIO] = None):
        self.scope = Scope(parent)
        self.scope.define_function('print', 1, [ANY], NIL, self.builtin_print)
        self.debug_level = debug_level
        self.debug_out = debug_out

    def debug(self, msg: str, level: int = 1):
        if self.debug_level >= level:
            print(f"[interpreter] {msg}", file=self.debug_out or sys.stdout)

    @staticmethod
    def builtin_print(args: List[PlcObject]) -> PlcObject:
        print(to_string(args[0]))
        return NIL_VALUE

    # Public API

    def run(self, source: ast.Source) -> PlcObject:
        self.debug('execution started')
        for field in source.fields:
            self.visit_field(field, self.scope)
        for method in source.methods:
            self.visit_method(method, self.scope)
        with _runtime_errors():
            main = self.scope.lookup_function('main', 0)
        limit = sys.getrecursionlimit()
        sys.setrecursionlimit(max(limit, RECURSION_LIMIT))
        try:
            result = main.invoke([])
        except RecursionError as e:
            raise PlcRuntimeError('maximum call depth exceeded') from e
        finally:
            sys.setrecursionlimit(limit)
        self.debug(f"main returned {to_string(result)}")
        return result

    # Top level

    def visit_field(self, field: ast.Field, scope: Scope) -> None:
        value = self.evaluate(field.value, scope) if field.value is not None else NIL_VALUE
        with _runtime_errors():
            scope.define_variable(field.name, None, value)
        self.debug(f"field {field.name} = {to_string(value)}", 2)

    def visit_method(self, method: ast.Method, scope: Scope) -> None:
        defining = scope

        def invoke(arguments: List[PlcObject]) -> PlcObject:
            call_scope = defining.child()
            with _runtime_errors():
                for name, argument in zip(method.parameters, arguments):
                    call_scope.define_variable(name, None, argument)
            self.debug(f"call {method.name}({', '.join(to_string(a) for a in arguments)})", 3)
            result = self.execute_block(method.statements, call_scope)
            if isinstance(result, ReturnSignal):
                return result.value
            return NIL_VALUE

        with _runtime_errors():
            scope.define_function(method.name, len(method.parameters),
                                  [ANY] * len(method.parameters), ANY, invoke)
        self.debug(f"define method {method.name}/{len(method.parameters)}", 2)

    # Statements

    def execute_block(self, statements: List[ast.Stmt], scope: Scope) -> Optional[ReturnSignal]:
        for statement in statements:
            result = self.execute(statement, scope)
            if isinstance(result, ReturnSignal):
                return result
        return None

    def execute(self, statement: ast.Stmt, scope: Scope) -> Optional[ReturnSignal]:
        if isinstance(statement, ast.ExpressionStmt):
            self.evaluate(statement.expression, scope)
            return None
        if isinstance(statement, ast.Declaration):
            value = self.evaluate(statement.value, scope) if statement.value is not None else NIL_VALUE
            with _runtime_errors():
                scope.define_variable(statement.name, None, value)
            self.debug(f"declare {statement.name} = {to_string(value)}", 2)
            return None
        if isinstance(statement, ast.Assignment):
            self.assign(statement, scope)
            return None
        if isinstance(statement, ast.If):
            condition = require_type(bool, self.evaluate(statement.condition, scope), 'condition')
            self.debug(f"if condition -> {condition}", 3)
            branch = statement.then_statements if condition else statement.else_statements
            return self.execute_block(branch, scope.child())
        if isinstance(statement, ast.For):
            iterable = self.evaluate(statement.value, scope)
            for element in self.iterate(iterable):
                body_scope = scope.child()
                with _runtime_errors():
                    body_scope.define_variable(statement.name, None, create(element))
                result = self.execute_block(statement.statements, body_scope)
                if isinstance(result, ReturnSignal):
                    return result
            return None
        if isinstance(statement, ast.While):
            while require_type(bool, self.evaluate(statement.condition, scope), 'condition'):
                result = self.execute_block(statement.statements, scope.child())
                if isinstance(result, ReturnSignal):
                    return result
            return None
        if isinstance(statement, ast.Return):
            return ReturnSignal(self.evaluate(statement.value, scope))
        raise NotImplementedError(f"execute: unexpected node type {type(statement)}")

    def assign(self, statement: ast.Assignment, scope: Scope) -> None:
        receiver = statement.receiver
        if not isinstance(receiver, ast.Access):
            raise PlcRuntimeError('assignment target must be a variable or field access')
        value = self.evaluate(statement.value, scope)
        with _runtime_errors():
            if receiver.receiver is not None:
                self.evaluate(receiver.receiver, scope).set_field(receiver.name, value)
            else:
                scope.lookup_variable(receiver.name).value = value

    @staticmethod
    def iterate(obj: PlcObject) -> Iterator[Any]:
        value = obj.value
        if value is None or isinstance(value, (str, bool, int, Decimal)):
            raise PlcRuntimeError(f"expected an iterable value, received {type_of(value)}")
        try:
            return iter(value)
        except TypeError as e:
            raise PlcRuntimeError(f"expected an iterable value, received {type_of(value)}") from e

    # Expressions

    def evaluate(self, expression: ast.Expr, scope: Scope) -> PlcObject:
        if isinstance(expression, ast.Literal):
            return create(expression.literal)
        if isinstance(expression, ast.Group):
            return self.evaluate(expression.expression, scope)
        if isinstance(expression, ast.Binary):
            return self.evaluate_binary(expression, scope)
        if isinstance(expression, ast.Access):
            with _runtime_errors():
                if expression.receiver is not None:
                    return self.evaluate(expression.receiver, scope).get_field(expression.name).value
                return scope.lookup_variable(expression.name).value
        if isinstance(expression, ast.Function):
            receiver = None
            if expression.receiver is not None:
                receiver = self.evaluate(expression.receiver, scope)
            arguments = [self.evaluate(argument, scope) for argument in expression.arguments]
            with _runtime_errors():
                if receiver is not None:
                    return receiver.call_method(expression.name, arguments)
                function = scope.lookup_function(expression.name, len(arguments))
            return function.invoke(arguments)
        raise NotImplementedError(f"evaluate: unexpected node type {type(expression)}")

    def evaluate_binary(self, expression: ast.Binary, scope: Scope) -> PlcObject:
        operator = expression.operator
        left = self.evaluate(expression.left, scope)
        if operator in ('AND', 'OR'):
            decided = require_type(bool, left, f"{operator} operand")
            if decided == (operator == 'OR'):
                return create(decided)
            return create(require_type(bool, self.evaluate(expression.right, scope), f"{operator} operand"))
        right = self.evaluate(expression.right, scope)
        if operator == '==':
            return create(equals(left.value, right.value))
        if operator == '!=':
            return create(not equals(left.value, right.value))
        if operator in COMPARISONS:
            return create(self.compare(operator, left.value, right.value))
        if operator == '+' and 'String' in (type_of(left.value), type_of(right.value)):
            return create(to_string(left) + to_string(right))
        if operator in ('+', '-', '*', '/'):
            a, b = self.numeric_operands(operator, left, right)
            return create(arithmetic(operator, a, b))
        raise PlcRuntimeError(f"unknown operator {operator}")

    @staticmethod
    def compare(operator: str, a: Any, b: Any) -> bool:
        if type_of(a) not in COMPARABLE_KINDS or type_of(a) != type_of(b):
            raise PlcRuntimeError(f"cannot compare {type_of(a)} with {type_of(b)} using {operator}")
        return COMPARISONS[operator](a, b)

    @staticmethod
    def numeric_operands(operator: str, left: PlcObject, right: PlcObject):
        a, b = left.value, right.value
        if isinstance(a, Decimal):
            return a, require_type(Decimal, right, f"right operand of {operator}")
        a = require_type(int, left, f"left operand of {operator}")
        return a, require_type(int, right, f"right operand of {operator}")


def run(source: ast.Source, debug_level: int = 0, debug_out: Optional[TextIO] = None) -> PlcObject:
    """Execute a Source AST with a fresh Interpreter and return main's result."""
    return Interpreter(debug_level=debug_level, debug_out=debug_out).run(source)

"""Abstract Syntax Tree (AST) definitions for PLC.

The parser builds these nodes; the analyzer then fills in the annotation
fields (`type`, `variable`, `function`) in place. Annotation fields are
excluded from equality and `repr` so a parsed tree compares equal to the
same tree after analysis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from .environment import Function as FunctionBinding, Variable
from .types import Type


def _annotation():
    return field(default=None, init=False, compare=False, repr=False)


@dataclass
class Node:
    """Base class for all AST nodes."""
    pass


# Expressions


@dataclass
class Expr(Node):
    pass


@dataclass
class Literal(Expr):
    literal: Any
    type: Optional[Type] = _annotation()


@dataclass
class Group(Expr):
    expression: Expr
    type: Optional[Type] = _annotation()


@dataclass
class Binary(Expr):
    operator: str
    left: Expr
    right: Expr
    type: Optional[Type] = _annotation()


@dataclass
class Access(Expr):
    receiver: Optional[Expr]
    name: str
    variable: Optional[Variable] = _annotation()
    type: Optional[Type] = _annotation()


@dataclass
class Function(Expr):
    receiver: Optional[Expr]
    name: str
    arguments: List[Expr]
    function: Optional[FunctionBinding] = _annotation()
    type: Optional[Type] = _annotation()


# Statements


@dataclass
class Stmt(Node):
    pass


@dataclass
class ExpressionStmt(Stmt):
    expression: Expr


@dataclass
class Declaration(Stmt):
    name: str
    type_name: Optional[str]
    value: Optional[Expr]
    variable: Optional[Variable] = _annotation()


@dataclass
class Assignment(Stmt):
    receiver: Expr
    value: Expr


@dataclass
class If(Stmt):
    condition: Expr
    then_statements: List[Stmt]
    else_statements: List[Stmt]


@dataclass
class For(Stmt):
    name: str
    value: Expr
    statements: List[Stmt]


@dataclass
class While(Stmt):
    condition: Expr
    statements: List[Stmt]


@dataclass
class Return(Stmt):
    value: Expr


# Top level


@dataclass
class Field(Node):
    name: str
    type_name: Optional[str]
    value: Optional[Expr]
    variable: Optional[Variable] = _annotation()


@dataclass
class Method(Node):
    name: str
    parameters: List[str]
    parameter_type_names: List[str]
    return_type_name: Optional[str]
    statements: List[Stmt]
    function: Optional[FunctionBinding] = _annotation()


@dataclass
class Source(Node):
    fields: List[Field]
    methods: List[Method]

"""Lexical scopes and the bindings they hold.

The same `Scope` class serves both passes. The analyzer stores variables
with a static type and no value; the interpreter stores variables whose
`value` is the live cell that every read and assignment goes through.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .errors import ScopeError

if TYPE_CHECKING:
    from .types import Type


@dataclass
class Variable:
    name: str
    type: Optional['Type']
    value: Any = None


@dataclass
class Function:
    name: str
    arity: int
    parameter_types: List['Type']
    return_type: Optional['Type']
    function: Callable[[List[Any]], Any] = field(compare=False, repr=False)

    def invoke(self, arguments: List[Any]) -> Any:
        return self.function(arguments)


class Scope:
    """A node in the tree of lexical scopes."""
    def __init__(self, parent: Optional['Scope'] = None):
        self.parent = parent
        self.variables: Dict[str, Variable] = {}
        self.functions: Dict[Tuple[str, int], Function] = {}

    def child(self) -> 'Scope':
        return Scope(self)

    def define_variable(self, name: str, type: Optional['Type'], value: Any = None) -> Variable:
        if name in self.variables:
            raise ScopeError(f"variable {name} is already defined in this scope")
        variable = Variable(name, type, value)
        self.variables[name] = variable
        return variable

    def lookup_variable(self, name: str) -> Variable:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        raise ScopeError(f"variable {name} is not defined")

    def define_function(self, name: str, arity: int, parameter_types: List['Type'],
                        return_type: Optional['Type'], function: Callable[[List[Any]], Any]) -> Function:
        key = (name, arity)
        if key in self.functions:
            raise ScopeError(f"function {name}/{arity} is already defined in this scope")
        fn = Function(name, arity, list(parameter_types), return_type, function)
        self.functions[key] = fn
        return fn

    def lookup_function(self, name: str, arity: int) -> Function:
        key = (name, arity)
        scope: Optional[Scope] = self
        while scope is not None:
            if key in scope.functions:
                return scope.functions[key]
            scope = scope.parent
        raise ScopeError(f"function {name}/{arity} is not defined")

    def __repr__(self) -> str:
        return f"Scope(variables={list(self.variables)}, functions={list(self.functions)})"

"""Static types and runtime values for PLC.

Static types are `Type` objects kept in a registry keyed by name. The
built-in types are registered at import time; record types carry a scope
holding their fields and methods and are added with `register_type`.

Runtime values are `PlcObject` wrappers around host values:

=============  ====================
PLC type       host representation
=============  ====================
Integer        int
Decimal        decimal.Decimal
Boolean        bool
Character      Char
String         str
Nil            None
=============  ====================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from .environment import Function, Scope, Variable
from .errors import ScopeError


@dataclass(eq=False)
class Type:
    """A PLC static type. Types compare by identity."""
    name: str
    scope: Scope = field(default_factory=Scope, repr=False)

    def __repr__(self) -> str:
        return self.name

    def get_field(self, name: str) -> Variable:
        return self.scope.lookup_variable(name)

    def get_method(self, name: str, arity: int) -> Function:
        # slot 0 of every method is the receiver
        return self.scope.lookup_function(name, arity + 1)


ANY = Type('Any')
NIL = Type('Nil')
COMPARABLE = Type('Comparable')
BOOLEAN = Type('Boolean')
INTEGER = Type('Integer')
DECIMAL = Type('Decimal')
CHARACTER = Type('Character')
STRING = Type('String')
INTEGER_ITERABLE = Type('IntegerIterable')

_TYPES: Dict[str, Type] = {}


def register_type(type: Type) -> Type:
    if type.name in _TYPES and _TYPES[type.name] is not type:
        raise ScopeError(f"type {type.name} is already registered")
    _TYPES[type.name] = type
    return type


def unregister_type(name: str) -> None:
    _TYPES.pop(name, None)


def get_type(name: str) -> Type:
    if name not in _TYPES:
        raise ScopeError(f"unknown type {name}")
    return _TYPES[name]


for _builtin in (ANY, NIL, COMPARABLE, BOOLEAN, INTEGER, DECIMAL, CHARACTER, STRING, INTEGER_ITERABLE):
    register_type(_builtin)


class Char(str):
    """A single PLC character, kept distinct from a one-character String."""
    def __repr__(self) -> str:
        return f"Char({str.__repr__(self)})"


@dataclass
class PlcObject:
    """A runtime value: a host value plus the scope of its fields and methods."""
    value: Any
    scope: Scope = field(default_factory=Scope, compare=False, repr=False)

    def get_field(self, name: str) -> Variable:
        return self.scope.lookup_variable(name)

    def set_field(self, name: str, value: 'PlcObject') -> None:
        self.scope.lookup_variable(name).value = value

    def call_method(self, name: str, arguments: List['PlcObject']) -> 'PlcObject':
        method = self.scope.lookup_function(name, len(arguments) + 1)
        return method.invoke([self] + list(arguments))


NIL_VALUE = PlcObject(None)


def create(value: Any) -> PlcObject:
    """Wrap a host value, leaving existing PlcObjects untouched."""
    if isinstance(value, PlcObject):
        return value
    if value is None:
        return NIL_VALUE
    return PlcObject(value)


def type_of(value: Any) -> str:
    """Return the PLC type name of a host value."""
    if value is None:
        return 'Nil'
    if isinstance(value, bool):
        return 'Boolean'
    if isinstance(value, int):
        return 'Integer'
    if isinstance(value, Decimal):
        return 'Decimal'
    if isinstance(value, Char):
        return 'Character'
    if isinstance(value, str):
        return 'String'
    return type(value).__name__


def to_string(value: Any) -> str:
    """Convert a host value to the text `print` and concatenation use."""
    if isinstance(value, PlcObject):
        value = value.value
    if value is None:
        return 'NIL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, Decimal):
        # keep the literal's scale; avoid scientific notation
        return format(value, 'f')
    return str(value)

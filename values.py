"""
MicroScript value model
Tagged runtime values plus the parameter, function and closure records
"""

from typing import Any, Optional, Tuple
from dataclasses import dataclass

from error_handling import TYPE_ANNOTATIONS, UnknownTypeAnnotationError


INTEGER = "Integer"
FLOAT32 = "Float32"
FLOAT64 = "Float64"
BOOLEAN = "Boolean"
STRING = "String"
LIST = "List"
CLOSURE = "Closure"

VALUE_TYPES = (INTEGER, FLOAT32, FLOAT64, BOOLEAN, STRING, LIST, CLOSURE)
NUMERIC_TYPES = (INTEGER, FLOAT32, FLOAT64)

VOID = "void"


# ============================================================================
# VALUES
# ============================================================================

@dataclass(frozen=True)
class Value:
  """Immutable tagged runtime value"""
  type: str
  value: Any

  def __post_init__(self):
    if self.type not in VALUE_TYPES:
      raise ValueError(f"Unknown value type: {self.type}")

  @property
  def is_numeric(self) -> bool:
    return self.type in NUMERIC_TYPES

  def __str__(self) -> str:
    # Deferred to avoid a cycle: stdlib renders values
    from stdlib import show
    return show(self)


def make_value(value: Any, type_name: str) -> Value:
  """Create an immutable runtime value"""
  if type_name == LIST:
    value = tuple(value)
  return Value(type_name, value)


def make_list(elements) -> Value:
  """List value of raw string tokens"""
  return make_value([make_value(element, STRING) for element in elements], LIST)


def numeric_value(number) -> Value:
  """Wrap a Python number produced by arithmetic"""
  if isinstance(number, bool):
    raise ValueError("Booleans are not numbers")
  if isinstance(number, int):
    return make_value(number, INTEGER)
  return make_value(float(number), FLOAT64)


# ============================================================================
# CALLABLES
# ============================================================================

def check_annotation(annotation: str, allow_void: bool = False) -> str:
  if annotation in TYPE_ANNOTATIONS or (allow_void and annotation == VOID):
    return annotation
  raise UnknownTypeAnnotationError(annotation)


@dataclass(frozen=True)
class Parameter:
  name: str
  declared_type: str

  def __post_init__(self):
    check_annotation(self.declared_type)


@dataclass(frozen=True)
class Function:
  """Named function; body is the ordered statement text"""
  name: str
  parameters: Tuple[Parameter, ...]
  return_type: str
  body: Tuple[str, ...]

  def __post_init__(self):
    check_annotation(self.return_type, allow_void=True)

  @property
  def arity(self) -> int:
    return len(self.parameters)


@dataclass(frozen=True)
class Closure:
  """Arrow function value

  An expression body is a single expression; a block body is raw statement
  text separated by semicolons.
  """
  name: str
  parameters: Tuple[Parameter, ...]
  return_type: str
  body: str
  is_expression_body: bool

  def __post_init__(self):
    check_annotation(self.return_type, allow_void=True)

  def body_statements(self) -> Tuple[str, ...]:
    if self.is_expression_body:
      return (f"return {self.body};",)
    # Deferred: utilities imports this module
    from utilities import split_top_level
    return tuple(f"{part};" for part in split_top_level(self.body, ";") if part)

  def to_function(self, name: Optional[str] = None) -> Function:
    return Function(name or self.name, self.parameters, self.return_type, self.body_statements())

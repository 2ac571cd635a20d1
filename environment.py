"""
MicroScript environments
Chained scopes with separate variable and function namespaces
"""

from typing import Dict, List, Optional, Tuple

from error_handling import UndefinedVariableError, UndefinedFunctionError
from values import Value, Function


class Environment:
  """A single lexical scope

  Lookups walk outward through the parent chain. Writes only ever touch the
  scope they are called on.
  """

  def __init__(self, parent: Optional['Environment'] = None):
    self.variables: Dict[str, Value] = {}
    self.functions: Dict[str, Function] = {}
    self.parent = parent

  def create_child(self) -> 'Environment':
    return Environment(self)

  @property
  def depth(self) -> int:
    depth = 0
    scope = self.parent
    while scope is not None:
      depth += 1
      scope = scope.parent
    return depth

  # ==================== VARIABLES ====================

  def set_variable(self, name: str, value: Value) -> None:
    self.variables[name] = value

  def lookup_variable(self, name: str) -> Optional[Value]:
    """Find a variable in the scope chain, None if unbound"""
    scope = self
    while scope is not None:
      if name in scope.variables:
        return scope.variables[name]
      scope = scope.parent
    return None

  def get_variable(self, name: str) -> Value:
    value = self.lookup_variable(name)
    if value is None:
      raise UndefinedVariableError(name, self.visible_variable_names())
    return value

  def has_variable(self, name: str) -> bool:
    return self.lookup_variable(name) is not None

  def resolve_variable_scope(self, name: str) -> Optional['Environment']:
    """Nearest scope that owns a binding for name"""
    scope = self
    while scope is not None:
      if name in scope.variables:
        return scope
      scope = scope.parent
    return None

  # ==================== FUNCTIONS ====================

  def define_function(self, function: Function) -> None:
    self.functions[function.name] = function

  def resolve_function(self, name: str) -> Tuple[Function, 'Environment']:
    """Return the function and the scope it was defined in"""
    scope = self
    while scope is not None:
      if name in scope.functions:
        return scope.functions[name], scope
      scope = scope.parent
    raise UndefinedFunctionError(name, self.visible_function_names())

  def get_function(self, name: str) -> Function:
    function, _ = self.resolve_function(name)
    return function

  def has_function(self, name: str) -> bool:
    try:
      self.resolve_function(name)
    except UndefinedFunctionError:
      return False
    return True

  # ==================== INTROSPECTION ====================

  def _collect(self, table: str) -> List[str]:
    names = []
    scope = self
    while scope is not None:
      names.extend(n for n in getattr(scope, table) if n not in names)
      scope = scope.parent
    return names

  def visible_variable_names(self) -> List[str]:
    return self._collect('variables')

  def visible_function_names(self) -> List[str]:
    return self._collect('functions')

  def snapshot(self) -> Dict[str, str]:
    """Visible variables rendered as text, innermost binding wins"""
    return {name: str(self.lookup_variable(name)) for name in self.visible_variable_names()}

  def __repr__(self) -> str:
    return (f"Environment(depth={self.depth}, variables={sorted(self.variables)}, "
            f"functions={sorted(self.functions)})")

"""
Scope chain tests for MicroScript environments
"""

import pytest
from environment import Environment
from error_handling import UndefinedVariableError, UndefinedFunctionError
from values import Function, Parameter, make_value, INTEGER, STRING


def make_function(name, body=("return 1;",)):
  return Function(name, (Parameter("x", "Int32"),), "Int32", body)


class TestVariables:
  """Variable lookup and shadowing"""

  def test_set_and_get(self, env):
    env.set_variable("x", make_value(1, INTEGER))
    assert env.get_variable("x") == make_value(1, INTEGER)

  def test_child_sees_parent_bindings(self, env):
    env.set_variable("x", make_value(1, INTEGER))
    child = env.create_child()
    assert child.get_variable("x").value == 1
    assert child.parent is env
    assert child.depth == 1

  def test_child_shadows_without_touching_parent(self, env):
    env.set_variable("x", make_value(1, INTEGER))
    child = env.create_child()
    child.set_variable("x", make_value(2, INTEGER))

    assert child.get_variable("x").value == 2
    assert env.get_variable("x").value == 1

  def test_parent_does_not_see_child_bindings(self, env):
    child = env.create_child()
    child.set_variable("local", make_value("a", STRING))
    assert env.lookup_variable("local") is None
    assert not env.has_variable("local")

  def test_undefined_variable_raises(self, env):
    env.set_variable("count", make_value(1, INTEGER))
    with pytest.raises(UndefinedVariableError) as excinfo:
      env.get_variable("cont")
    assert excinfo.value.name == "cont"
    assert "count" in excinfo.value.candidates

  def test_resolve_variable_scope(self, env):
    env.set_variable("x", make_value(1, INTEGER))
    grandchild = env.create_child().create_child()
    assert grandchild.resolve_variable_scope("x") is env
    assert grandchild.resolve_variable_scope("y") is None

  def test_visible_names_innermost_first(self, env):
    env.set_variable("a", make_value(1, INTEGER))
    child = env.create_child()
    child.set_variable("b", make_value(2, INTEGER))
    child.set_variable("a", make_value(3, INTEGER))
    assert child.visible_variable_names() == ["b", "a"]
    assert child.snapshot() == {"a": "3", "b": "2"}


class TestFunctions:
  """Function namespace"""

  def test_define_and_resolve(self, env):
    square = make_function("square")
    env.define_function(square)
    child = env.create_child()

    function, defining_env = child.resolve_function("square")
    assert function is square
    assert defining_env is env
    assert child.has_function("square")

  def test_functions_and_variables_are_separate(self, env):
    env.define_function(make_function("f"))
    assert env.lookup_variable("f") is None
    env.set_variable("g", make_value(1, INTEGER))
    assert not env.has_function("g")

  def test_function_only_visible_in_descendants(self, env):
    child = env.create_child()
    child.define_function(make_function("inner"))
    with pytest.raises(UndefinedFunctionError) as excinfo:
      env.get_function("inner")
    assert str(excinfo.value) == "Function not found: inner"

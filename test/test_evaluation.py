"""
Expression evaluation tests
Arithmetic precedence, literal typing, strings, booleans and calls
"""

import pytest
from evaluation import evaluate, is_string_literal, match_call, process_escape_sequences
from error_handling import (
  EvaluationError,
  MicroScriptSyntaxError,
  MicroScriptTypeError,
  UndefinedVariableError,
  UndefinedFunctionError,
)
from values import (
  Function,
  Parameter,
  make_value,
  INTEGER,
  FLOAT32,
  FLOAT64,
  BOOLEAN,
  STRING,
)


class TestArithmetic:
  """Arithmetic sub-evaluator"""

  @pytest.mark.parametrize("expression,expected", [
    ("2 + 3 * 4", 14),
    ("(2+3)*4", 20),
    ("2^3^2", 64),
    ("-2^2", -4),
    ("10 - 4 - 3", 3),
    ("2 * -3", -6),
    ("2^-1", 0.5),
    ("abs(3 + 4) * 2", 14),
    ("  7  ", 7),
    ("7 % 3", 1),
    ("-7 % 3", 2),
    ("2 + 7 % 3 * 2", 4),
  ])
  def test_precedence(self, env, expression, expected):
    assert evaluate(expression, env).value == expected

  def test_integer_results_stay_integer(self, env):
    result = evaluate("2 + 3 * 4", env)
    assert result.type == INTEGER
    assert evaluate("2^10", env) == make_value(1024, INTEGER)

  def test_division_yields_float(self, env):
    result = evaluate("7 / 2", env)
    assert result == make_value(3.5, FLOAT64)
    assert evaluate("4 / 2", env).type == FLOAT64

  def test_decimal_literal_is_float(self, env):
    assert evaluate("1.5 + 1", env) == make_value(2.5, FLOAT64)

  def test_numeric_variables(self, env):
    env.set_variable("x", make_value(6, INTEGER))
    env.set_variable("y", make_value(0.5, FLOAT32))
    assert evaluate("x * 2", env) == make_value(12, INTEGER)
    assert evaluate("x * y", env) == make_value(3.0, FLOAT64)

  def test_unbound_identifier_is_not_zero(self, env):
    with pytest.raises(UndefinedVariableError):
      evaluate("missing + 1", env)

  def test_non_numeric_variable(self, env):
    env.set_variable("s", make_value("text", STRING))
    with pytest.raises(MicroScriptTypeError):
      evaluate("s + 1", env)

  def test_division_by_zero(self, env):
    with pytest.raises(EvaluationError, match="Division by zero"):
      evaluate("1 / (2 - 2)", env)

  def test_modulo(self, env):
    assert evaluate("7 % 3", env) == make_value(1, INTEGER)
    assert evaluate("7.5 % 2", env) == make_value(1.5, FLOAT64)

  def test_modulo_by_zero(self, env):
    with pytest.raises(EvaluationError, match="Modulo by zero"):
      evaluate("5 % 0", env)

  @pytest.mark.parametrize("expression", ["2 +", "(2 + 3", "2 3", "1.2.3", "2 # 3"])
  def test_malformed_arithmetic(self, env, expression):
    with pytest.raises(MicroScriptSyntaxError):
      evaluate(expression, env)

  def test_empty_expression(self, env):
    with pytest.raises(MicroScriptSyntaxError):
      evaluate("   ", env)


class TestStrings:
  """String literals, escapes and interpolation"""

  def test_plain_literal(self, env):
    assert evaluate('"hello"', env) == make_value("hello", STRING)

  def test_escape_sequences(self, env):
    assert evaluate(r'"a\tb\n\"q\""', env).value == 'a\tb\n"q"'
    assert process_escape_sequences(r"\x") == r"\x"

  def test_interpolation(self, env):
    env.set_variable("name", make_value("World", STRING))
    env.set_variable("n", make_value(3, INTEGER))
    assert evaluate('"Hello, {name}! {n}"', env).value == "Hello, World! 3"

  def test_interpolation_of_undefined_name(self, env):
    with pytest.raises(UndefinedVariableError):
      evaluate('"Hello, {nobody}"', env)

  def test_literal_detection(self):
    assert is_string_literal('"a"')
    assert is_string_literal('"say \\"hi\\""')
    assert not is_string_literal('"a" + "b"')
    assert not is_string_literal('"a')


class TestBooleans:
  """Boolean literals and negation"""

  def test_literals(self, env):
    assert evaluate("true", env) == make_value(True, BOOLEAN)
    assert evaluate("false", env) == make_value(False, BOOLEAN)

  def test_negation(self, env):
    env.set_variable("flag", make_value(True, BOOLEAN))
    assert evaluate("not flag", env).value is False
    assert evaluate("!false", env).value is True

  def test_negating_non_boolean(self, env):
    with pytest.raises(MicroScriptTypeError):
      evaluate("not 1", env)

  def test_bound_identifier_wins_over_literal_rules(self, env):
    env.set_variable("label", make_value("x", STRING))
    assert evaluate("label", env).type == STRING


class TestConditionals:
  """`cond ? a : b` expressions"""

  def test_literal_condition(self, env):
    assert evaluate("true ? 1 : 2", env) == make_value(1, INTEGER)
    assert evaluate("false ? 1 : 2", env) == make_value(2, INTEGER)

  def test_variable_condition_and_arithmetic_branches(self, env):
    env.set_variable("ready", make_value(True, BOOLEAN))
    env.set_variable("n", make_value(4, INTEGER))
    assert evaluate("ready ? n * 2 : n - 1", env) == make_value(8, INTEGER)
    assert evaluate("!ready ? n * 2 : n - 1", env) == make_value(3, INTEGER)

  def test_nested_in_false_branch(self, env):
    assert evaluate("false ? 1 : true ? 2 : 3", env).value == 2
    assert evaluate("false ? 1 : false ? 2 : 3", env).value == 3

  def test_nested_in_true_branch(self, env):
    assert evaluate("true ? false ? 1 : 2 : 3", env).value == 2

  def test_string_branches_may_contain_separators(self, env):
    assert evaluate('true ? "a ? b : c" : "d"', env) == make_value("a ? b : c", STRING)

  def test_condition_must_be_boolean(self, env):
    with pytest.raises(MicroScriptTypeError):
      evaluate("1 ? 2 : 3", env)

  def test_incomplete_conditional(self, env):
    with pytest.raises(MicroScriptSyntaxError):
      evaluate("true ? 1 :", env)


class TestCalls:
  """Call syntax inside expressions"""

  @pytest.fixture
  def env_with_functions(self, env):
    env.define_function(Function(
      "add",
      (Parameter("a", "Int32"), Parameter("b", "Int32")),
      "Int32",
      ("return a + b;",)
    ))
    env.define_function(Function("noop", (), "void", ("var t: Int32 = 1;",)))
    return env

  def test_match_call(self):
    assert match_call("f(1, 2)") == ("f", "1, 2")
    assert match_call("f()") == ("f", "")
    assert match_call("f(1) + g(2)") is None

  def test_call_returns_value(self, env_with_functions, context):
    assert evaluate("add(2, 3)", env_with_functions, context) == make_value(5, INTEGER)

  def test_void_call_in_expression_position(self, env_with_functions, context):
    with pytest.raises(MicroScriptTypeError):
      evaluate("noop()", env_with_functions, context)

  def test_unknown_function(self, env, context):
    with pytest.raises(UndefinedFunctionError):
      evaluate("nothing(1)", env, context)

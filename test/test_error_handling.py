"""
Error report tests
"""

import pytest
from error_handling import (
  ArgumentCountMismatchError,
  EvaluationError,
  MicroScriptError,
  MicroScriptSyntaxError,
  SystemCommandError,
  UndefinedFunctionError,
  UndefinedVariableError,
  UnknownTypeAnnotationError,
  close_matches,
  enhance_runtime_error_dict,
  format_runtime_error,
  generate_suggestions,
  make_runtime_error,
)


class TestHierarchy:

  def test_evaluation_errors(self):
    for error in (
      MicroScriptSyntaxError("bad"),
      UndefinedVariableError("x"),
      UndefinedFunctionError("f"),
      ArgumentCountMismatchError("f", 1, 2),
      UnknownTypeAnnotationError("Number"),
    ):
      assert isinstance(error, EvaluationError)

  def test_system_error_is_not_an_evaluation_error(self):
    error = SystemCommandError("cannot run")
    assert isinstance(error, MicroScriptError)
    assert not isinstance(error, EvaluationError)
    assert error.kind == "SystemError"

  def test_messages(self):
    assert str(UndefinedVariableError("x")) == "Variable 'x' not found."
    assert str(UnknownTypeAnnotationError("Number")) == "Unknown type annotation: Number"
    assert str(ArgumentCountMismatchError("add", 2, 1)) == (
      "Argument count mismatch for function: add (expected 2, got 1)"
    )


class TestReports:

  def test_format_full_report(self):
    error = make_runtime_error(
      "Variable 'cuont' not found.",
      "UndefinedVariable",
      statement="console.write(cuont);",
      suggestions=["Did you mean 'count'?"]
    )
    assert format_runtime_error(error) == (
      "Evaluation error: Variable 'cuont' not found.\n"
      "  Statement: console.write(cuont);\n"
      "  Suggestions:\n"
      "    - Did you mean 'count'?"
    )

  def test_format_bare_report(self):
    error = make_runtime_error("boom", "EvaluationError")
    assert format_runtime_error(error) == "Evaluation error: boom"

  def test_enhance_uses_error_statement(self):
    report = enhance_runtime_error_dict(MicroScriptSyntaxError("bad", "x = ;"))
    assert report['statement'] == "x = ;"
    assert report['kind'] == "SyntaxError"
    assert report['suggestions'] == []


class TestSuggestions:

  def test_close_matches(self):
    assert close_matches("totl", ["total", "other"]) == ["total"]

  def test_undefined_variable_without_matches(self):
    suggestions = generate_suggestions(UndefinedVariableError("zzz", ["alpha"]))
    assert suggestions == ["Declare it first, e.g. 'var zzz: Int32 = 0;'"]

  @pytest.mark.parametrize("word", ["true", "false", "not"])
  def test_keywords_get_no_declaration_hint(self, word):
    suggestions = generate_suggestions(UndefinedVariableError(word, ["x"]))
    assert suggestions == [f"'{word}' is a boolean keyword and cannot be used in arithmetic"]

  def test_undefined_function(self):
    suggestions = generate_suggestions(UndefinedFunctionError("ad", ["add", "sub"]))
    assert suggestions == ["Did you mean 'add'?"]

  def test_arity_hint(self):
    assert generate_suggestions(ArgumentCountMismatchError("f", 1, 3)) == ["'f' takes 1 argument"]

  def test_annotation_hint(self):
    [hint] = generate_suggestions(UnknownTypeAnnotationError("Int"))
    assert "Int32" in hint and "Float64" in hint

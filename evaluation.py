"""
MicroScript expression evaluation
String literals with interpolation, calls, identifiers, booleans and a
precedence-climbing arithmetic sub-evaluator
"""

from typing import Dict, Optional, Tuple, Union
import re

from environment import Environment
from error_handling import (
  EvaluationError,
  MicroScriptSyntaxError,
  MicroScriptTypeError,
  UndefinedVariableError,
)
from stdlib import show
from utilities import ensure_context, debug_log, split_arguments, find_closing_paren
from values import Value, make_value, numeric_value, STRING, BOOLEAN


Number = Union[int, float]

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_]\w*")
CALL_PATTERN = re.compile(r"([A-Za-z_]\w*)\s*\(")
INTERPOLATION_PATTERN = re.compile(r"\{(\w+)\}")

ESCAPE_SEQUENCES = {
  'n': "\n",
  't': "\t",
  'r': "\r",
  '\\': "\\",
  '"': '"',
  "'": "'",
  '0': "\0",
}


# ============================================================================
# STRING LITERALS
# ============================================================================

def is_string_literal(text: str) -> bool:
  """True for `"..."` with no other unescaped quote inside"""
  if len(text) < 2 or text[0] != '"' or text[-1] != '"':
    return False
  inner = text[1:-1]
  index = 0
  while index < len(inner):
    if inner[index] == "\\":
      index += 2
      continue
    if inner[index] == '"':
      return False
    index += 1
  # A trailing backslash escapes the closing quote
  return index == len(inner)


def process_escape_sequences(text: str) -> str:
  result = []
  index = 0
  while index < len(text):
    ch = text[index]
    if ch == "\\" and index + 1 < len(text) and text[index + 1] in ESCAPE_SEQUENCES:
      result.append(ESCAPE_SEQUENCES[text[index + 1]])
      index += 2
    else:
      result.append(ch)
      index += 1
  return "".join(result)


def interpolate_string(text: str, env: Environment) -> str:
  """Replace every {identifier} with the bound variable's textual form"""
  def substitute(match):
    name = match.group(1)
    value = env.lookup_variable(name)
    if value is None:
      raise UndefinedVariableError(name, env.visible_variable_names())
    return show(value)
  return INTERPOLATION_PATTERN.sub(substitute, text)


# ============================================================================
# CALL SYNTAX
# ============================================================================

def match_call(text: str) -> Optional[Tuple[str, str]]:
  """
  Split `name(args)` into (name, args)

  Only matches when the parenthesis opened after the name closes at the
  very end, so `f(1) + g(2)` is not a call.
  """
  match = CALL_PATTERN.match(text)
  if not match:
    return None
  open_index = match.end() - 1
  if find_closing_paren(text, open_index) != len(text) - 1:
    return None
  return match.group(1), text[open_index + 1:-1]


# ============================================================================
# ARITHMETIC SUB-EVALUATOR
# ============================================================================

class ArithmeticEvaluator:
  """
  Recursive-descent evaluator for arithmetic text

    expr    := term (('+'|'-') term)*
    term    := factor (('*'|'/'|'%') factor)*
    factor  := ('+'|'-') factor | primary ('^' operand)*
    operand := ('+'|'-') operand | primary
    primary := '(' expr ')' | number | identifier ['(' expr ')']

  `^` chains fold left, so 2^3^2 is (2^3)^2. An identifier followed by `(`
  is a parenthesised group, not a call.
  """

  def __init__(self, expression: str, env: Environment):
    self.expression = expression
    self.env = env
    self.pos = -1
    self.ch: Optional[str] = None

  def parse(self) -> Value:
    self._next_char()
    result = self._parse_expression()
    self._skip_whitespace()
    if self.ch is not None:
      raise self._unexpected()
    return numeric_value(result)

  # ==================== SCANNING ====================

  def _next_char(self) -> None:
    self.pos += 1
    self.ch = self.expression[self.pos] if self.pos < len(self.expression) else None

  def _skip_whitespace(self) -> None:
    while self.ch is not None and self.ch.isspace():
      self._next_char()

  def _eat(self, char: str) -> bool:
    self._skip_whitespace()
    if self.ch == char:
      self._next_char()
      return True
    return False

  def _expect_closing(self) -> None:
    if not self._eat(")"):
      raise MicroScriptSyntaxError(f"Missing ')' in expression: {self.expression}")

  def _unexpected(self) -> MicroScriptSyntaxError:
    if self.ch is None:
      return MicroScriptSyntaxError(f"Unexpected end of expression: {self.expression}")
    return MicroScriptSyntaxError(f"Unexpected: '{self.ch}' at position {self.pos} in {self.expression}")

  # ==================== GRAMMAR ====================

  def _parse_expression(self) -> Number:
    x = self._parse_term()
    while True:
      if self._eat("+"):
        x = x + self._parse_term()
      elif self._eat("-"):
        x = x - self._parse_term()
      else:
        return x

  def _parse_term(self) -> Number:
    x = self._parse_factor()
    while True:
      if self._eat("*"):
        x = x * self._parse_factor()
      elif self._eat("/"):
        divisor = self._parse_factor()
        if divisor == 0:
          raise EvaluationError(f"Division by zero in {self.expression}")
        x = x / divisor
      elif self._eat("%"):
        divisor = self._parse_factor()
        if divisor == 0:
          raise EvaluationError(f"Modulo by zero in {self.expression}")
        x = x % divisor
      else:
        return x

  def _parse_factor(self) -> Number:
    if self._eat("+"):
      return +self._parse_factor()
    if self._eat("-"):
      return -self._parse_factor()

    x = self._parse_primary()
    while self._eat("^"):
      x = self._power(x, self._parse_operand())
    return x

  def _parse_operand(self) -> Number:
    if self._eat("+"):
      return +self._parse_operand()
    if self._eat("-"):
      return -self._parse_operand()
    return self._parse_primary()

  def _parse_primary(self) -> Number:
    self._skip_whitespace()
    start = self.pos

    if self._eat("("):
      x = self._parse_expression()
      self._expect_closing()
      return x

    if self.ch is not None and (self.ch.isdigit() or self.ch == "."):
      while self.ch is not None and (self.ch.isdigit() or self.ch == "."):
        self._next_char()
      return self._parse_number(self.expression[start:self.pos])

    if self.ch is not None and (self.ch.isalpha() or self.ch == "_"):
      while self.ch is not None and (self.ch.isalnum() or self.ch == "_"):
        self._next_char()
      name = self.expression[start:self.pos]
      if self._eat("("):
        x = self._parse_expression()
        self._expect_closing()
        return x
      return self._variable_number(name)

    raise self._unexpected()

  # ==================== VALUES ====================

  def _parse_number(self, text: str) -> Number:
    try:
      if "." in text:
        return float(text)
      return int(text)
    except ValueError:
      raise MicroScriptSyntaxError(f"Invalid number: {text}") from None

  def _variable_number(self, name: str) -> Number:
    value = self.env.get_variable(name)
    if not value.is_numeric:
      raise MicroScriptTypeError(f"Type error: {name} is not numeric (got {value.type}).")
    return value.value

  def _power(self, base: Number, exponent: Number) -> Number:
    try:
      result = base ** exponent
    except ZeroDivisionError:
      raise EvaluationError(f"Division by zero in {self.expression}") from None
    except OverflowError:
      raise EvaluationError(f"Numeric overflow in {self.expression}") from None
    if isinstance(result, complex):
      raise EvaluationError(f"Complex result in {self.expression}")
    return result


def evaluate_arithmetic(expression: str, env: Environment) -> Value:
  try:
    return ArithmeticEvaluator(expression, env).parse()
  except OverflowError:
    raise EvaluationError(f"Numeric overflow in {expression}") from None


# ============================================================================
# EXPRESSION DISPATCH
# ============================================================================

def split_ternary(text: str) -> Optional[Tuple[str, str, str]]:
  """
  Split `cond ? a : b` at its top-level `?` and matching `:`

  Quoted text and parenthesised groups are skipped. A nested ternary in
  either branch stays whole: `a ? b : c ? d : e` has `c ? d : e` as its
  false branch.
  """
  in_quotes = False
  level = 0
  question = -1
  nested = 0
  previous = ""
  for index, ch in enumerate(text):
    if ch == '"' and previous != "\\":
      in_quotes = not in_quotes
    elif in_quotes:
      pass
    elif ch == "(":
      level += 1
    elif ch == ")":
      level -= 1
    elif level == 0 and ch == "?":
      if question < 0:
        question = index
      else:
        nested += 1
    elif level == 0 and ch == ":" and question >= 0:
      if nested == 0:
        return text[:question].strip(), text[question + 1:index].strip(), text[index + 1:].strip()
      nested -= 1
    previous = ch
  return None


def choose_branch(parts: Tuple[str, str, str], env: Environment, context: Dict) -> Value:
  condition, when_true, when_false = parts
  if not (condition and when_true and when_false):
    raise MicroScriptSyntaxError(f"Incomplete conditional expression: {condition} ? {when_true} : {when_false}")
  value = evaluate(condition, env, context)
  if value.type != BOOLEAN:
    raise MicroScriptTypeError(f"Type error: condition {condition} is not a boolean.")
  return evaluate(when_true if value.value else when_false, env, context)


def negate(operand: str, env: Environment, context: Dict) -> Value:
  value = evaluate(operand, env, context)
  if value.type != BOOLEAN:
    raise MicroScriptTypeError(f"Type error: {operand.strip()} is not a boolean.")
  return make_value(not value.value, BOOLEAN)


def evaluate(expression: str, env: Environment, context: Optional[Dict] = None) -> Value:
  """
  Evaluate an expression string against a scope

  Dispatch order: string literal, call, bound identifier, true/false,
  conditional `c ? a : b`, boolean negation, arithmetic.
  """
  context = ensure_context(context)
  text = expression.strip()
  if not text:
    raise MicroScriptSyntaxError("Empty expression")

  debug_log(context, f"Evaluating: {text}")

  if is_string_literal(text):
    return make_value(interpolate_string(process_escape_sequences(text[1:-1]), env), STRING)

  call = match_call(text)
  if call is not None:
    # Deferred: the invoker executes statements, which evaluate expressions
    from interpreter import invoke_function
    name, args = call
    result = invoke_function(name, split_arguments(args), env, context)
    if result is None:
      raise MicroScriptTypeError(f"Type error: function '{name}' does not return a value.")
    return result

  if IDENTIFIER_PATTERN.fullmatch(text):
    value = env.lookup_variable(text)
    if value is not None:
      return value

  if text == "true":
    return make_value(True, BOOLEAN)
  if text == "false":
    return make_value(False, BOOLEAN)

  ternary = split_ternary(text)
  if ternary is not None:
    return choose_branch(ternary, env, context)

  if text.startswith("not "):
    return negate(text[4:], env, context)
  if text.startswith("!"):
    return negate(text[1:], env, context)

  return evaluate_arithmetic(text, env)

"""
Utilities module for the MicroScript runtime
Contains the execution context, text splitting helpers and type checks
shared by the evaluator and the executor
"""

from typing import Any, Dict, List, Optional, TextIO
import struct
import sys

from error_handling import (
  MicroScriptTypeError,
  UnknownTypeAnnotationError,
  ArgumentCountMismatchError,
)
from values import (
  Value,
  make_value,
  STRING,
  INTEGER,
  FLOAT32,
  FLOAT64,
  LIST,
)


ASSIGNMENT_MODES = ("shadow", "mutate")

INTEGER_RANGES = {
  "Int32": (-2 ** 31, 2 ** 31 - 1),
  "Int64": (-2 ** 63, 2 ** 63 - 1),
}


# ==================== EXECUTION CONTEXT ====================

def make_execution_context(
  debug: bool = False,
  assignment_mode: str = "shadow",
  output: Optional[TextIO] = None,
  error_output: Optional[TextIO] = None,
  max_call_depth: int = 64,
  run_entry_point: bool = True
) -> Dict:
  """
  Create the per-run execution context

  Args:
    debug: Print trace lines to stderr
    assignment_mode: "shadow" writes reassignments into the current scope,
      "mutate" writes into the nearest scope that owns the name
    output: Stream for console output (stdout when None)
    error_output: Stream for error reports (stdout when None)
    max_call_depth: Maximum nesting of function invocations
    run_entry_point: Invoke a C-style `fn main` after the top level runs

  Returns:
    Context dictionary threaded through execute/evaluate/invoke
  """
  if assignment_mode not in ASSIGNMENT_MODES:
    raise ValueError(
      f"assignment_mode must be one of {', '.join(ASSIGNMENT_MODES)}, got {assignment_mode!r}"
    )
  if max_call_depth < 1:
    raise ValueError("max_call_depth must be positive")
  return {
    'debug': debug,
    'assignment_mode': assignment_mode,
    'output': output,
    'error_output': error_output,
    'max_call_depth': max_call_depth,
    'run_entry_point': run_entry_point,
    'errors': [],
    'call_depth': 0,
  }


def ensure_context(context: Optional[Dict]) -> Dict:
  return context if context is not None else make_execution_context()


def get_output(context: Dict) -> TextIO:
  return context.get('output') or sys.stdout


def get_error_output(context: Dict) -> TextIO:
  return context.get('error_output') or sys.stdout


def debug_log(context: Dict, message: str) -> None:
  if context.get('debug'):
    indent = "  " * context.get('call_depth', 0)
    print(f"[debug] {indent}{message}", file=sys.stderr)


# ==================== TEXT SPLITTING ====================

def split_arguments(text: str) -> List[str]:
  """
  Split call arguments on every comma

  Not aware of quotes or nesting: `f(g(1, 2))` passes two arguments
  `g(1` and `2)`.
  """
  text = text.strip()
  if not text:
    return []
  return [part.strip() for part in text.split(",")]


def split_top_level(text: str, separator: str = ",") -> List[str]:
  """
  Split text on separator outside of string literals and parentheses

  Examples:
    split_top_level('"a, b", f(1, 2), c') -> ['"a, b"', 'f(1, 2)', 'c']
  """
  parts = []
  current = []
  in_quotes = False
  level = 0
  previous = ""
  for ch in text:
    if ch == '"' and previous != "\\":
      in_quotes = not in_quotes
    elif not in_quotes and ch == "(":
      level += 1
    elif not in_quotes and ch == ")":
      level -= 1
    if ch == separator and not in_quotes and level == 0:
      parts.append("".join(current).strip())
      current = []
    else:
      current.append(ch)
    previous = ch
  tail = "".join(current).strip()
  if tail:
    parts.append(tail)
  return parts


def find_closing_paren(text: str, open_index: int) -> int:
  """Index of the parenthesis closing the one at open_index, -1 if none"""
  level = 0
  in_quotes = False
  for index in range(open_index, len(text)):
    ch = text[index]
    if ch == '"' and (index == 0 or text[index - 1] != "\\"):
      in_quotes = not in_quotes
    elif in_quotes:
      continue
    elif ch == "(":
      level += 1
    elif ch == ")":
      level -= 1
      if level == 0:
        return index
  return -1


def brace_balance(text: str) -> int:
  """Opening minus closing braces outside of string literals"""
  balance = 0
  in_quotes = False
  previous = ""
  for ch in text:
    if ch == '"' and previous != "\\":
      in_quotes = not in_quotes
    elif not in_quotes and ch == "{":
      balance += 1
    elif not in_quotes and ch == "}":
      balance -= 1
    previous = ch
  return balance


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(subject: str, expected: str, actual: Value) -> MicroScriptTypeError:
  """
  Generate type mismatch error

  Args:
    subject: What was checked, e.g. "variable 'x'"
    expected: Expected annotation or tag
    actual: Offending value
  """
  article = "an" if expected[0] in "AEIOU" else "a"
  return MicroScriptTypeError(
    f"Type error: {subject} is not {article} {expected} (got {actual.type} {actual})."
  )


def arity_error(func_name: str, expected: int, got: int) -> ArgumentCountMismatchError:
  return ArgumentCountMismatchError(func_name, expected, got)


# ==================== TYPE CHECKING ====================

def to_single_precision(number: float) -> float:
  return struct.unpack("f", struct.pack("f", number))[0]


def check_type(value: Value, annotation: str, subject: str = "value") -> Value:
  """
  Validate a value against a type annotation

  Args:
    value: Value produced by evaluation
    annotation: String, Int32, Int64, Float32 or Float64
    subject: Description used in error messages

  Returns:
    The value to store; integers and floats are converted to the annotated
    float width

  Raises:
    MicroScriptTypeError on mismatch, UnknownTypeAnnotationError otherwise
  """
  if annotation == "String":
    if value.type != STRING:
      raise type_mismatch_error(subject, "String", value)
    return value

  if annotation in INTEGER_RANGES:
    if value.type != INTEGER:
      raise type_mismatch_error(subject, "Integer", value)
    low, high = INTEGER_RANGES[annotation]
    if not low <= value.value <= high:
      raise MicroScriptTypeError(
        f"Type error: {subject} value {value.value} is out of range for {annotation}."
      )
    return value

  if annotation in (FLOAT32, FLOAT64):
    if value.type not in (INTEGER, FLOAT32, FLOAT64):
      raise type_mismatch_error(subject, annotation, value)
    if value.type == FLOAT64 and annotation == FLOAT64:
      return value
    try:
      number = float(value.value)
      if annotation == FLOAT32:
        number = to_single_precision(number)
    except OverflowError:
      raise MicroScriptTypeError(
        f"Type error: {subject} value {value.value} is out of range for {annotation}."
      ) from None
    return make_value(number, annotation)

  raise UnknownTypeAnnotationError(annotation)


# ==================== VALUE EXTRACTION ====================

def unwrap_value(val: Any) -> Any:
  """
  Recursively unwrap runtime values to plain Python values

  Examples:
    unwrap_value(Value("Integer", 3)) -> 3
    unwrap_value(make_list(["1", "2"])) -> ["1", "2"]
  """
  if isinstance(val, Value):
    if val.type == LIST:
      return [unwrap_value(element) for element in val.value]
    return val.value
  if isinstance(val, (list, tuple)):
    return [unwrap_value(element) for element in val]
  return val

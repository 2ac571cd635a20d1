"""
MicroScript Standard Library
Textual rendering of values and the console built-ins
"""

from typing import Dict, List
import subprocess

from error_handling import MicroScriptSyntaxError, SystemCommandError
from utilities import to_single_precision, get_output, debug_log
from values import (
  Value,
  STRING,
  INTEGER,
  FLOAT32,
  FLOAT64,
  BOOLEAN,
  LIST,
  CLOSURE,
)


# ============================================================================
# TEXTUAL FORM
# ============================================================================

def show_float32(number: float) -> str:
  """Shortest decimal that round-trips through single precision"""
  for digits in range(1, 10):
    text = f"{number:.{digits}g}"
    if to_single_precision(float(text)) == number:
      break
  if "e" not in text and "." not in text and "n" not in text:
    text += ".0"
  return text


def show(value: Value) -> str:
  """Convert value to its textual form"""
  if value.type == STRING:
    return value.value
  elif value.type == INTEGER:
    return str(value.value)
  elif value.type == FLOAT64:
    return repr(value.value)
  elif value.type == FLOAT32:
    return show_float32(value.value)
  elif value.type == BOOLEAN:
    return "true" if value.value else "false"
  elif value.type == LIST:
    return "[" + ", ".join(show(element) for element in value.value) + "]"
  elif value.type == CLOSURE:
    return f"<closure {value.value.name}>"
  else:
    return f"<{value.type}>"


# ============================================================================
# CONSOLE FUNCTIONS
# ============================================================================

def console_write(value: Value, context: Dict, newline: bool = True) -> None:
  """Write a value to the context's output stream"""
  print(show(value), end="\n" if newline else "", file=get_output(context))


def console_writef(template: Value, args: List[Value], context: Dict, newline: bool = False) -> None:
  """Fill `{}` placeholders in order; no line break unless newline is set"""
  end = "\n" if newline else ""
  if template.type != STRING:
    print(show(template), end=end, file=get_output(context))
    return

  text = template.value
  pieces = text.split("{}")
  rendered = [pieces[0]]
  for index, piece in enumerate(pieces[1:]):
    rendered.append(show(args[index]) if index < len(args) else "{}")
    rendered.append(piece)
  print("".join(rendered), end=end, file=get_output(context))


def run_system_command(command: str, context: Dict) -> int:
  """
  Run an executable and stream its stdout line by line

  Blocks until the child exits; there is no timeout.

  Returns:
    Exit status of the child process
  """
  tokens = command.split()
  if not tokens:
    raise MicroScriptSyntaxError("console.system() requires a command")

  debug_log(context, f"Spawning: {tokens}")
  output = get_output(context)
  try:
    process = subprocess.Popen(tokens, stdout=subprocess.PIPE, text=True)
  except OSError as e:
    raise SystemCommandError(f"Failed to run '{tokens[0]}': {e.strerror or e}") from e

  with process.stdout:
    for line in process.stdout:
      print(line.rstrip("\n"), file=output)
  status = process.wait()
  debug_log(context, f"'{tokens[0]}' exited with status {status}")
  return status

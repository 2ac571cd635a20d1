"""
MicroScript Interpreter
Statement execution, function invocation and the program driver
Errors are reported at the statement boundary; evaluation and invocation
propagate them
"""

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from environment import Environment
from error_handling import (
  MicroScriptError,
  EvaluationError,
  MicroScriptSyntaxError,
  MicroScriptTypeError,
  format_runtime_error,
  enhance_runtime_error_dict,
)
from evaluation import evaluate, is_string_literal
from parsing import Statement, parse_statement, parse_parameters, default_parser
from stdlib import console_write, console_writef, run_system_command
from utilities import (
  make_execution_context,
  ensure_context,
  get_error_output,
  debug_log,
  split_arguments,
  split_top_level,
  brace_balance,
  check_type,
  to_single_precision,
  arity_error,
  unwrap_value,
)
from values import (
  Value,
  Function,
  Closure,
  make_value,
  make_list,
  check_annotation,
  BOOLEAN,
  CLOSURE,
  FLOAT32,
  VOID,
)


# ============================================================================
# ERROR REPORTING
# ============================================================================

def report_error(error: MicroScriptError, statement: Optional[str], context: Dict) -> None:
  """Print an error report and remember it in the context"""
  report = enhance_runtime_error_dict(error, statement)
  print(format_runtime_error(report), file=get_error_output(context))
  context['errors'].append((statement, error))


# ============================================================================
# SCOPE WRITES
# ============================================================================

def assign_variable(name: str, value: Value, env: Environment, context: Dict) -> None:
  """
  Write a reassignment according to the context's assignment mode

  "shadow" always binds in env itself; "mutate" rebinds in the nearest
  scope that owns name, falling back to env.
  """
  target = env
  if context['assignment_mode'] == "mutate":
    target = env.resolve_variable_scope(name) or env
  target.set_variable(name, value)


# ============================================================================
# STATEMENT HANDLERS
# ============================================================================

def exec_writef(record: Statement, env: Environment, context: Dict) -> None:
  args = split_top_level(record.value['arguments'] or "")
  if not args:
    raise MicroScriptSyntaxError("console.writef() requires a template")
  template = evaluate(args[0], env, context)
  values = [evaluate(arg, env, context) for arg in args[1:]]
  console_writef(template, values, context)


def exec_write(record: Statement, env: Environment, context: Dict) -> None:
  """console.write(expr) or console.write(template, args...) plus a line break"""
  args = split_top_level(record.value['expression'] or "")
  if not args:
    raise MicroScriptSyntaxError("console.write() requires at least one argument")
  if len(args) == 1:
    console_write(evaluate(args[0], env, context), context)
    return
  template = evaluate(args[0], env, context)
  values = [evaluate(arg, env, context) for arg in args[1:]]
  console_writef(template, values, context, newline=True)


def exec_system(record: Statement, env: Environment, context: Dict) -> None:
  command = (record.value['command'] or "").strip()
  if is_string_literal(command):
    command = evaluate(command, env, context).value
  run_system_command(command, context)


def exec_arrow_function(record: Statement, env: Environment, context: Dict) -> None:
  """Define the arrow function and bind its Closure value"""
  name = record.value['name']
  closure = Closure(
    name=name,
    parameters=parse_parameters(record.value['parameters'] or "", type_first=True),
    return_type=record.value['return_type'] or VOID,
    body=(record.value['body'] or "").strip(),
    is_expression_body=record.type == "ARROW_EXPRESSION",
  )
  env.define_function(closure.to_function())
  env.set_variable(name, make_value(closure, CLOSURE))
  debug_log(context, f"Defined arrow function {name}/{len(closure.parameters)}")


def exec_var_declaration(record: Statement, env: Environment, context: Dict) -> None:
  name = record.value['name']
  annotation = check_annotation(record.value['type_name'])
  value = evaluate(record.value['expression'], env, context)
  env.set_variable(name, check_type(value, annotation, f"variable '{name}'"))


def exec_bool_declaration(record: Statement, env: Environment, context: Dict) -> None:
  name = record.value['name']
  value = evaluate(record.value['expression'], env, context)
  if value.type != BOOLEAN:
    raise MicroScriptTypeError(f"Type error: variable '{name}' is not a Boolean (got {value.type} {value}).")
  env.set_variable(name, value)


def exec_list_declaration(record: Statement, env: Environment, context: Dict) -> None:
  contents = (record.value['elements'] or "").strip()
  elements = [element.strip() for element in contents.split(",")] if contents else []
  env.set_variable(record.value['name'], make_list(elements))


def exec_increment(record: Statement, env: Environment, context: Dict) -> None:
  name = record.value['name']
  value = env.get_variable(name)
  if not value.is_numeric:
    raise MicroScriptTypeError(f"Type error: cannot apply {record.value['operator']} to {value.type} variable '{name}'.")
  number = value.value + 1 if record.value['operator'] == "++" else value.value - 1
  if value.type == FLOAT32:
    number = to_single_precision(number)
  assign_variable(name, make_value(number, value.type), env, context)


def exec_call(record: Statement, env: Environment, context: Dict) -> None:
  invoke_function(record.value['name'], split_arguments(record.value['arguments']), env, context)


def exec_assignment(record: Statement, env: Environment, context: Dict) -> None:
  value = evaluate(record.value['expression'], env, context)
  assign_variable(record.value['name'], value, env, context)


def exec_statement(record: Statement, env: Environment, context: Dict) -> None:
  """Dispatch a parsed statement; errors propagate to the caller"""
  debug_log(context, f"Executing: {record}")

  statement_type = record.type

  if statement_type in ("EMPTY", "COMMENT"):
    return
  elif statement_type == "WRITEF":
    exec_writef(record, env, context)
  elif statement_type == "WRITE":
    exec_write(record, env, context)
  elif statement_type == "SYSTEM":
    exec_system(record, env, context)
  elif statement_type in ("ARROW_BLOCK", "ARROW_EXPRESSION"):
    exec_arrow_function(record, env, context)
  elif statement_type == "VAR_DECLARATION":
    exec_var_declaration(record, env, context)
  elif statement_type == "BOOL_DECLARATION":
    exec_bool_declaration(record, env, context)
  elif statement_type == "LIST_DECLARATION":
    exec_list_declaration(record, env, context)
  elif statement_type == "MALFORMED":
    raise MicroScriptSyntaxError(record.value['message'])
  elif statement_type == "RETURN":
    raise MicroScriptSyntaxError("'return' outside of a function body")
  elif statement_type == "INCREMENT":
    exec_increment(record, env, context)
  elif statement_type == "CONTROL_FLOW":
    debug_log(context, f"Skipping control flow: {record.text}")
  elif statement_type == "CALL":
    exec_call(record, env, context)
  elif statement_type == "ASSIGNMENT":
    exec_assignment(record, env, context)
  elif statement_type == "EXPRESSION":
    evaluate(record.value['expression'], env, context)
  else:
    debug_log(context, f"Ignoring unrecognised statement: {record.text}")


def execute_record(record: Statement, env: Environment, context: Dict) -> None:
  try:
    exec_statement(record, env, context)
  except MicroScriptError as e:
    report_error(e, record.text, context)


def execute(statement: str, env: Environment, context: Optional[Dict] = None) -> None:
  """
  Execute one statement string in env

  Runtime errors are reported to the context's error stream and recorded in
  context['errors']; they never escape this function.
  """
  context = ensure_context(context)
  execute_record(parse_statement(statement), env, context)


def executable_statements(lines: Iterable[str]) -> Iterator[Statement]:
  """
  Parse lines, leaving out control-flow headers and the blocks they open
  """
  depth = 0
  for line in lines:
    text = line.strip()
    if depth > 0:
      depth += brace_balance(text)
      continue
    record = parse_statement(text)
    if record.type == "CONTROL_FLOW":
      depth = max(brace_balance(text), 0)
      continue
    yield record


# ============================================================================
# FUNCTION INVOCATION
# ============================================================================

def evaluate_return(function: Function, record: Statement, call_env: Environment, context: Dict) -> Optional[Value]:
  expression = record.value.get('expression')
  if not expression:
    if function.return_type == VOID:
      return None
    raise MicroScriptTypeError(
      f"Type error: function '{function.name}' must return a {function.return_type}."
    )
  value = evaluate(expression, call_env, context)
  if function.return_type == VOID:
    return value
  return check_type(value, function.return_type, f"return value of '{function.name}'")


def run_function_body(function: Function, call_env: Environment, context: Dict) -> Optional[Value]:
  for record in executable_statements(function.body):
    if record.type == "RETURN":
      return evaluate_return(function, record, call_env, context)
    execute_record(record, call_env, context)
  return None


def invoke_function(
  name: str,
  arg_exprs: Sequence[str],
  caller_env: Environment,
  context: Optional[Dict] = None
) -> Optional[Value]:
  """
  Call a named function

  Args:
    name: Function name, resolved from caller_env outward
    arg_exprs: Argument expressions, evaluated in caller_env
    caller_env: Scope of the call site

  Returns:
    The returned value, or None when the body finishes without `return`
  """
  context = ensure_context(context)
  function, defining_env = caller_env.resolve_function(name)

  if len(arg_exprs) != function.arity:
    raise arity_error(name, function.arity, len(arg_exprs))

  if context['call_depth'] >= context['max_call_depth']:
    raise EvaluationError(
      f"Maximum call depth of {context['max_call_depth']} exceeded calling '{name}'"
    )

  call_env = defining_env.create_child()
  for parameter, expression in zip(function.parameters, arg_exprs):
    value = evaluate(expression, caller_env, context)
    call_env.set_variable(
      parameter.name,
      check_type(value, parameter.declared_type, f"argument '{parameter.name}' of '{name}'")
    )

  debug_log(context, f"Calling {name}({', '.join(arg_exprs)})")
  context['call_depth'] += 1
  try:
    result = run_function_body(function, call_env, context)
  finally:
    context['call_depth'] -= 1
  debug_log(context, f"{name} returned {'void' if result is None else result}")
  return result


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def define_function_from_source(header: str, body_lines: Iterable[str], env: Environment) -> Tuple[Function, bool]:
  """
  Define a function from its header line and body lines

  Returns:
    (function, is_entry_point) where is_entry_point marks a C-style `fn main`
  """
  info = default_parser().parse_function_header(header)
  body = tuple(line.strip() for line in body_lines if line.strip())
  function = Function(info['name'], info['parameters'], info['return_type'], body)
  env.define_function(function)
  return function, info['is_entry_point']


def run_program(
  lines: Sequence[str],
  function_ranges: Iterable[Tuple[int, int]] = (),
  env: Optional[Environment] = None,
  context: Optional[Dict] = None
) -> Environment:
  """
  Run a scanned program

  Args:
    lines: Comment-stripped source lines
    function_ranges: (header, closing brace) line indices, 0-based and
      inclusive, of every function definition
    env: Root scope, a fresh one when None
    context: Execution context

  Functions are defined before any top-level line runs.
  """
  context = ensure_context(context)
  env = env if env is not None else Environment()

  function_lines = set()
  has_entry_point = False
  for start, end in sorted(function_ranges):
    if not 0 <= start < end < len(lines):
      report_error(MicroScriptSyntaxError(f"Invalid function range: {start}-{end}"), None, context)
      continue
    function_lines.update(range(start, end + 1))
    try:
      function, is_entry_point = define_function_from_source(lines[start], lines[start + 1:end], env)
    except MicroScriptError as e:
      report_error(e, lines[start].strip(), context)
      continue
    debug_log(context, f"Defined function {function.name}/{function.arity} -> {function.return_type}")
    has_entry_point = has_entry_point or is_entry_point

  top_level = [line for index, line in enumerate(lines) if index not in function_lines]
  for record in executable_statements(top_level):
    execute_record(record, env, context)

  if has_entry_point and context['run_entry_point']:
    try:
      invoke_function("main", [], env, context)
    except MicroScriptError as e:
      report_error(e, "main()", context)

  return env


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class MicroScriptInterpreter:
  """A root environment bundled with its execution context"""

  def __init__(self, context: Dict, global_env: Optional[Environment] = None):
    self.context = context
    self.global_env = global_env if global_env is not None else Environment()

  @property
  def errors(self) -> List[Tuple[Optional[str], MicroScriptError]]:
    return self.context['errors']

  def execute(self, statement: str) -> None:
    execute(statement, self.global_env, self.context)

  def evaluate(self, expression: str) -> Value:
    return evaluate(expression, self.global_env, self.context)

  def invoke(self, name: str, *arg_exprs: str) -> Optional[Value]:
    return invoke_function(name, list(arg_exprs), self.global_env, self.context)

  def run_program(self, lines: Sequence[str], function_ranges: Iterable[Tuple[int, int]] = ()) -> Environment:
    return run_program(lines, function_ranges, self.global_env, self.context)

  def define_function(self, header: str, body_lines: Iterable[str]) -> Function:
    function, _ = define_function_from_source(header, body_lines, self.global_env)
    return function

  def get_variable(self, name: str) -> Value:
    return self.global_env.get_variable(name)

  def bindings(self) -> Dict:
    """Root-scope variables as plain Python values"""
    return {name: unwrap_value(value) for name, value in self.global_env.variables.items()}


def create_interpreter(debug: bool = False, **options) -> MicroScriptInterpreter:
  """Factory function returning an interpreter

  Keyword options are passed to make_execution_context.
  """
  return MicroScriptInterpreter(make_execution_context(debug=debug, **options))


def create_debug_interpreter(**options) -> MicroScriptInterpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True, **options)

"""
Concurrent MicroScript runs (Using Pykka)
Every actor owns an independently rooted environment, its own execution
context and a captured output buffer; nothing is shared between actors
"""

from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
import io
import uuid

import pykka

from interpreter import create_interpreter
from values import Value


Program = Union[Sequence[str], Tuple[Sequence[str], Iterable[Tuple[int, int]]]]


class ScriptActor(pykka.ThreadingActor):
  """Actor that runs MicroScript programs against its own root scope"""

  def __init__(self, actor_id: str, debug: bool = False, **options):
    super().__init__()
    self.actor_id = actor_id
    self.buffer = io.StringIO()
    self.interpreter = create_interpreter(
      debug=debug, output=self.buffer, error_output=self.buffer, **options
    )

  def run_program(self, lines: Sequence[str], function_ranges: Iterable[Tuple[int, int]] = ()) -> str:
    """Run a scanned program and return everything written so far"""
    self.interpreter.run_program(lines, function_ranges)
    return self.buffer.getvalue()

  def execute(self, statement: str) -> str:
    self.interpreter.execute(statement)
    return self.buffer.getvalue()

  def get_variable(self, name: str) -> Value:
    return self.interpreter.get_variable(name)

  def get_output(self) -> str:
    return self.buffer.getvalue()

  def error_count(self) -> int:
    return len(self.interpreter.errors)


class ScriptRegistry:
  """Registry for managing script actors"""

  def __init__(self):
    self.actors: Dict[str, pykka.ActorRef] = {}

  def start_actor(self, actor_id: Optional[str] = None, **options) -> pykka.ActorRef:
    actor_id = actor_id or str(uuid.uuid4())
    if actor_id in self.actors:
      raise ValueError(f"Actor already registered: {actor_id}")
    actor_ref = ScriptActor.start(actor_id, **options)
    self.register(actor_id, actor_ref)
    return actor_ref

  def register(self, actor_id: str, actor_ref: pykka.ActorRef):
    """Register an actor"""
    self.actors[actor_id] = actor_ref

  def get_actor(self, actor_id: str) -> Optional[pykka.ActorRef]:
    """Get actor by ID"""
    return self.actors.get(actor_id)

  def terminate_all(self):
    """Stop all actors; already stopped actors are skipped"""
    for actor_ref in self.actors.values():
      if actor_ref.is_alive():
        actor_ref.stop()
    self.actors.clear()


def split_program(program: Program) -> Tuple[Sequence[str], Iterable[Tuple[int, int]]]:
  """Accept either bare lines or a (lines, function_ranges) pair"""
  if isinstance(program, tuple) and len(program) == 2 and not isinstance(program[0], str):
    return program[0], program[1]
  return program, ()


def run_scripts_concurrently(
  programs: Mapping[str, Program],
  timeout: Optional[float] = None,
  **options
) -> Dict[str, str]:
  """
  Run several programs in parallel, one actor each

  Args:
    programs: Script name -> lines, or (lines, function_ranges)
    timeout: Seconds to wait for all scripts, None waits forever
    options: Passed to make_execution_context for every actor

  Returns:
    Script name -> captured output (console output and error reports)
  """
  registry = ScriptRegistry()
  try:
    futures = {}
    for name, program in programs.items():
      lines, ranges = split_program(program)
      actor = registry.start_actor(name, **options).proxy()
      futures[name] = actor.run_program(list(lines), list(ranges))
    outputs = pykka.get_all(list(futures.values()), timeout=timeout)
    return dict(zip(futures.keys(), outputs))
  finally:
    registry.terminate_all()

"""
Error handling for the MicroScript runtime with detailed error reports
Exception classes are raised by the evaluator and invoker; reports are
plain dictionaries rendered at the executor boundary
"""

from typing import List, Optional, Dict, Iterable
import difflib


TYPE_ANNOTATIONS = ("String", "Int32", "Int64", "Float32", "Float64")
RESERVED_WORDS = ("true", "false", "not")


# ============================================================================
# EXCEPTION CLASSES
# ============================================================================

class MicroScriptError(Exception):
    """Base class for every error raised inside the runtime"""
    kind = "Error"

    def __init__(self, message: str, statement: Optional[str] = None):
        self.message = message
        self.statement = statement
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class EvaluationError(MicroScriptError):
    """Failure while evaluating an expression or running a call"""
    kind = "EvaluationError"


class MicroScriptSyntaxError(EvaluationError):
    """Malformed statement or expression text"""
    kind = "SyntaxError"


class MicroScriptTypeError(EvaluationError):
    """Value tag does not match a declared or expected type"""
    kind = "TypeError"


class UndefinedVariableError(EvaluationError):
    kind = "UndefinedVariable"

    def __init__(self, name: str, candidates: Iterable[str] = ()):
        self.name = name
        self.candidates = list(candidates)
        super().__init__(f"Variable '{name}' not found.")


class UndefinedFunctionError(EvaluationError):
    kind = "UndefinedFunction"

    def __init__(self, name: str, candidates: Iterable[str] = ()):
        self.name = name
        self.candidates = list(candidates)
        super().__init__(f"Function not found: {name}")


class ArgumentCountMismatchError(EvaluationError):
    kind = "ArgumentCountMismatch"

    def __init__(self, function_name: str, expected: int, got: int):
        self.function_name = function_name
        self.expected = expected
        self.got = got
        super().__init__(
            f"Argument count mismatch for function: {function_name} "
            f"(expected {expected}, got {got})"
        )


class UnknownTypeAnnotationError(EvaluationError):
    kind = "UnknownTypeAnnotation"

    def __init__(self, annotation: str):
        self.annotation = annotation
        super().__init__(f"Unknown type annotation: {annotation}")


class SystemCommandError(MicroScriptError):
    """console.system could not launch its command"""
    kind = "SystemError"


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_runtime_error(
    message: str,
    kind: str,
    statement: Optional[str] = None,
    suggestions: Optional[List[str]] = None
) -> Dict:
    """Create an immutable runtime error structure"""
    return {
        'message': message,
        'kind': kind,
        'statement': statement,
        'suggestions': suggestions or []
    }


def format_runtime_error(error: Dict) -> str:
    """Format runtime error as string"""
    error_msg = f"Evaluation error: {error['message']}"

    if error['statement']:
        error_msg += f"\n  Statement: {error['statement']}"

    if error['suggestions']:
        error_msg += "\n  Suggestions:"
        for suggestion in error['suggestions']:
            error_msg += f"\n    - {suggestion}"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def close_matches(name: str, candidates: Iterable[str], limit: int = 3) -> List[str]:
    """Names from candidates that look like a misspelling of name"""
    return difflib.get_close_matches(name, sorted(set(candidates)), n=limit, cutoff=0.6)


def generate_suggestions(exc: MicroScriptError) -> List[str]:
    """Generate helpful suggestions based on the error"""
    suggestions = []

    if isinstance(exc, (UndefinedVariableError, UndefinedFunctionError)):
        for match in close_matches(exc.name, exc.candidates):
            suggestions.append(f"Did you mean '{match}'?")
        if isinstance(exc, UndefinedVariableError) and exc.name in RESERVED_WORDS:
            suggestions.append(f"'{exc.name}' is a boolean keyword and cannot be used in arithmetic")
        elif isinstance(exc, UndefinedVariableError) and not suggestions:
            suggestions.append(f"Declare it first, e.g. 'var {exc.name}: Int32 = 0;'")

    elif isinstance(exc, ArgumentCountMismatchError):
        plural = "" if exc.expected == 1 else "s"
        suggestions.append(f"'{exc.function_name}' takes {exc.expected} argument{plural}")

    elif isinstance(exc, UnknownTypeAnnotationError):
        suggestions.append(f"Valid annotations: {', '.join(TYPE_ANNOTATIONS)}")

    return suggestions


def enhance_runtime_error_dict(exc: MicroScriptError, statement: Optional[str] = None) -> Dict:
    """Convert a raised runtime error into an error report dict"""
    return make_runtime_error(
        message=exc.message,
        kind=exc.kind,
        statement=statement if statement is not None else exc.statement,
        suggestions=generate_suggestions(exc)
    )

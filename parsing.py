"""
MicroScript statement parser
Ordered statement-shape matchers that turn one statement string into a
structured Statement record, plus function header parsing
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import sys

from pyparsing import (
    Word, alphas, alphanums, Literal, Keyword, Regex, Suppress,
    Optional as PyParsingOptional, MatchFirst, NotAny, ParseException,
    StringEnd, one_of
)

from error_handling import MicroScriptSyntaxError
from values import Parameter
from utilities import find_closing_paren


# Raw expression text up to an optional trailing semicolon
EXPRESSION_PATTERN = r"[^;\s].*?(?=\s*;?\s*$)"

# Everything up to the final ')' of the statement
PAREN_CONTENT_PATTERN = r".*(?=\)\s*;?\s*$)"

CONTROL_FLOW_KEYWORDS = "if elif else while for switch do"


@dataclass(frozen=True)
class Statement:
    """A recognised statement shape

    `type` names the shape (VAR_DECLARATION, CALL, ...), `value` holds the
    raw text fragments the shape captured.
    """
    type: str
    value: Dict[str, Any] = field(default_factory=dict)
    text: str = ""

    def __str__(self) -> str:
        return f"{self.type}({self.text})"


class StatementGrammar:
    """pyparsing elements for every statement shape, in dispatch order"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_grammar()

    def _setup_grammar(self):
        """Setup the statement grammar"""

        identifier = Word(alphas + "_", alphanums + "_")
        type_name = Word(alphas + "_", alphanums + "_")
        expression = Regex(EXPRESSION_PATTERN)
        paren_content = Regex(PAREN_CONTENT_PATTERN)
        terminator = Suppress(PyParsingOptional(Literal(";"))) + StringEnd()
        rest_of_statement = PyParsingOptional(Regex(r".+"))

        def record(kind: str, *names: str):
            """Parse action building a Statement from named results"""
            def action(s, loc, tokens):
                value = {name: tokens.get(name) for name in names}
                return Statement(kind, value, s.strip())
            return action

        # Comments
        self.comment = Regex(r"//.*").set_parse_action(record("COMMENT"))

        # Console built-ins (writef before write: shared prefix)
        self.console_writef = (
            Suppress(Literal("console.writef") + Literal("(")) +
            paren_content("arguments") + Suppress(")") + terminator
        ).set_parse_action(record("WRITEF", "arguments"))

        self.console_write = (
            Suppress(Literal("console.write") + Literal("(")) +
            paren_content("expression") + Suppress(")") + terminator
        ).set_parse_action(record("WRITE", "expression"))

        self.console_system = (
            Suppress(Literal("console.system") + Literal("(")) +
            paren_content("command") + Suppress(")") + terminator
        ).set_parse_action(record("SYSTEM", "command"))

        # Arrow functions: var name = |Type: a, Type: b| => [Type] body
        arrow_head = (
            Suppress(Keyword("var")) + identifier("name") + Suppress("=") +
            Suppress("|") + Regex(r"[^|]*")("parameters") + Suppress("|") +
            Suppress("=>") +
            PyParsingOptional(one_of("String Int32 Int64 Float32 Float64 void", as_keyword=True)("return_type"))
        )
        self.arrow_block = (
            arrow_head + Suppress("{") + Regex(r".*(?=\}\s*;?\s*$)")("body") + Suppress("}") + terminator
        ).set_parse_action(record("ARROW_BLOCK", "name", "parameters", "return_type", "body"))
        self.arrow_expression = (
            arrow_head + expression("body") + terminator
        ).set_parse_action(record("ARROW_EXPRESSION", "name", "parameters", "return_type", "body"))

        # Declarations
        self.var_declaration = (
            Suppress(Keyword("var")) + identifier("name") + Suppress(":") + type_name("type_name") +
            Suppress("=") + expression("expression") + terminator
        ).set_parse_action(record("VAR_DECLARATION", "name", "type_name", "expression"))

        self.bool_declaration = (
            Suppress(Keyword("bool")) + identifier("name") + Suppress("=") +
            expression("expression") + terminator
        ).set_parse_action(record("BOOL_DECLARATION", "name", "expression"))

        self.list_declaration = (
            Suppress(Keyword("list")) + identifier("name") + Suppress("=") +
            Suppress("[") + Regex(r"[^\]]*")("elements") + Suppress("]") + terminator
        ).set_parse_action(record("LIST_DECLARATION", "name", "elements"))

        def malformed(keyword: str, description: str):
            def action(s, loc, tokens):
                return Statement("MALFORMED", {
                    'keyword': keyword,
                    'message': f"Syntax error in {description} declaration: {s.strip()}"
                }, s.strip())
            return (Keyword(keyword) + rest_of_statement).set_parse_action(action)

        self.malformed_declaration = (
            malformed("var", "variable") |
            malformed("bool", "boolean") |
            malformed("list", "list")
        )

        # return is only meaningful inside a function body
        self.return_statement = (
            Suppress(Keyword("return")) + PyParsingOptional(expression("expression")) + terminator
        ).set_parse_action(record("RETURN", "expression"))

        # ++x, --x, x++, x--
        step = one_of("++ --")
        self.increment = (
            ((step("operator") + identifier("name")) | (identifier("name") + step("operator"))) +
            terminator
        ).set_parse_action(record("INCREMENT", "operator", "name"))

        # Recognised structurally, bodies are never executed
        self.control_flow = (
            (one_of(CONTROL_FLOW_KEYWORDS, as_keyword=True)("keyword") + rest_of_statement) |
            (Literal("}")("keyword") + rest_of_statement)
        ).set_parse_action(record("CONTROL_FLOW", "keyword"))

        def make_call(s, loc, tokens):
            call = tokens["call"]
            if find_closing_paren(call, 0) != len(call) - 1:
                raise ParseException(s, loc, "not a single call")
            return Statement("CALL", {
                'name': tokens["name"],
                'arguments': call[1:-1]
            }, s.strip())

        self.call = (
            identifier("name") + Regex(r"\(.*\)(?=\s*;?\s*$)")("call") + terminator
        ).set_parse_action(make_call)

        self.assignment = (
            identifier("name") + Suppress("=") + NotAny(Literal("=")) +
            expression("expression") + terminator
        ).set_parse_action(record("ASSIGNMENT", "name", "expression"))

        self.expression_statement = (
            expression("expression") + terminator
        ).set_parse_action(record("EXPRESSION", "expression"))

        # Dispatch priority is the order of this list
        self.statement = MatchFirst([
            self.comment,
            self.console_writef,
            self.console_write,
            self.console_system,
            self.arrow_block,
            self.arrow_expression,
            self.var_declaration,
            self.bool_declaration,
            self.list_declaration,
            self.malformed_declaration,
            self.return_statement,
            self.increment,
            self.control_flow,
            self.call,
            self.assignment,
            self.expression_statement,
        ])

        # Function headers handed over by the scanner
        parameter_list = Suppress("(") + Regex(r"[^)]*")("parameters") + Suppress(")")

        self.function_header = (
            Suppress(Keyword("function")) + identifier("name") + parameter_list +
            PyParsingOptional(Suppress("->") + type_name("return_type")) + Suppress("{")
        ).set_parse_action(record("FUNCTION_HEADER", "name", "parameters", "return_type"))

        self.c_function_header = (
            one_of("String Int32 Int64 Float32 Float64 fn", as_keyword=True)("return_type") +
            identifier("name") + parameter_list + Suppress("{")
        ).set_parse_action(record("C_FUNCTION_HEADER", "name", "parameters", "return_type"))

        self.header = self.function_header | self.c_function_header


class StatementParser:
    """Statement parser built on StatementGrammar"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = StatementGrammar(debug)

    def parse_statement(self, text: str) -> Statement:
        """Classify a statement; text no shape accepts becomes UNKNOWN"""
        text = text.strip()
        if not text:
            return Statement("EMPTY", {}, "")
        try:
            result = self.grammar.statement.parse_string(text, parse_all=True)
        except ParseException:
            return Statement("UNKNOWN", {}, text)
        if self.debug:
            print(f"[debug] Parsed: {result[0]}", file=sys.stderr)
        return result[0]

    def parse_function_header(self, header: str) -> Dict[str, Any]:
        """
        Parse `function name(a: T) -> R {` or C-style `R name(a: T) {`

        Returns:
            Dict with name, parameters, return_type and is_entry_point
        """
        header = header.strip()
        try:
            record = self.grammar.header.parse_string(header, parse_all=True)[0]
        except ParseException as e:
            raise MicroScriptSyntaxError(f"Invalid function declaration: {header}", header) from e

        return_type = record.value.get('return_type') or "void"
        is_c_style = record.type == "C_FUNCTION_HEADER"
        if return_type == "fn":
            return_type = "void"
        return {
            'name': record.value['name'],
            'parameters': parse_parameters(record.value.get('parameters') or ""),
            'return_type': return_type,
            'is_entry_point': is_c_style and record.value['name'] == "main",
        }


def parse_parameters(text: str, type_first: bool = False) -> Tuple[Parameter, ...]:
    """
    Parse a parameter list

    Functions write `name: Type`, arrow functions write `Type: name`.
    An empty list may be written as `&`.
    """
    text = text.strip()
    if text in ("", "&"):
        return ()

    parameters: List[Parameter] = []
    for piece in text.split(","):
        parts = piece.split(":")
        if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
            raise MicroScriptSyntaxError(f"Invalid parameter declaration: {piece.strip()}")
        first, second = parts[0].strip(), parts[1].strip()
        if type_first:
            parameters.append(Parameter(second, first))
        else:
            parameters.append(Parameter(first, second))
    return tuple(parameters)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

_default_parser: Optional[StatementParser] = None


def create_parser(debug: bool = False) -> StatementParser:
    """Factory function returning a statement parser"""
    return StatementParser(debug)


def create_debug_parser() -> StatementParser:
    return StatementParser(debug=True)


def default_parser() -> StatementParser:
    """Shared parser instance; the grammar holds no per-parse state"""
    global _default_parser
    if _default_parser is None:
        _default_parser = create_parser()
    return _default_parser


def parse_statement(text: str) -> Statement:
    return default_parser().parse_statement(text)

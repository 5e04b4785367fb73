"""Safe arithmetic / boolean expression evaluation for condition nodes.

Expressions are evaluated with ``simpleeval``, which walks the parsed tree
against a whitelist and bounds exponents and string sizes. A few
spreadsheet-style spellings are accepted on top of Python syntax: ``&&``,
``||``, ``!``, ``=``, ``<>``, ``true``/``false`` and ``if(cond, a, b)``.
Function names are case-insensitive.
"""

from __future__ import annotations

import ast
import math
import re
from collections.abc import Callable
from typing import Any

from simpleeval import InvalidExpression, SimpleEval


class ExpressionError(Exception):
    """Raised when an expression cannot be parsed or evaluated."""

    def __init__(self, message: str, expression: str = "") -> None:
        super().__init__(message)
        self.expression = expression


_STRING_RE = re.compile(r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")
_CALL_NAME_RE = re.compile(r"\b([A-Za-z_]\w*)(\s*\()")
_IF_CALL_RE = re.compile(r"(^|[\s(,=!<>&|+\-*/%])if\s*\(")
_BOOL_LITERAL_RE = re.compile(r"\b(true|false)\b", re.IGNORECASE)

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "floor": math.floor,
    "ceiling": math.ceil,
    "len": len,
    "lower": lambda value: str(value).lower(),
    "upper": lambda value: str(value).upper(),
    "iif": lambda condition, when_true, when_false: when_true if condition else when_false,
}

# simpleeval allows these on plain values; conditions never need them
_DISABLED_NODES = (ast.Attribute, ast.Subscript)


def _rewrite_code(code: str) -> str:
    """Translate the accepted non-Python spellings in a code segment."""
    code = code.replace("&&", " and ").replace("||", " or ")
    code = code.replace("<>", "!=")
    # lone "=" is equality; keep ==, !=, <=, >=
    code = re.sub(r"(?<![=!<>])=(?!=)", "==", code)
    # "!" not followed by "=" is logical negation
    code = re.sub(r"!(?!=)", " not ", code)
    code = _BOOL_LITERAL_RE.sub(lambda m: "True" if m.group(1).lower() == "true" else "False", code)
    code = _CALL_NAME_RE.sub(lambda m: m.group(1).lower() + m.group(2), code)
    return _IF_CALL_RE.sub(lambda m: f"{m.group(1)}iif(", code)


def preprocess(expression: str) -> str:
    """Rewrite an expression into Python syntax, leaving string literals intact."""
    parts = _STRING_RE.split(expression)
    return "".join(part if i % 2 else _rewrite_code(part) for i, part in enumerate(parts))


def _name_as_text(node: ast.Name) -> str:
    return node.id


class SafeExpressionEvaluator:
    """``ExpressionEvaluator`` over a fixed arithmetic / boolean grammar.

    A bare identifier that is neither a literal nor a known function
    evaluates to its own name as a string, so an interpolated word such as
    ``go == 'go'`` compares as text.

    ``if()`` evaluates all three arguments before choosing one.
    """

    def evaluate(self, expression: str) -> Any:
        """Evaluate *expression* and return its raw value.

        Args:
            expression: Expression text, already interpolated.

        Returns:
            The evaluated value (bool, number or string).

        Raises:
            ExpressionError: On empty input, syntax errors, disallowed
                constructs, values over the size limits, or runtime errors
                such as division by zero.
        """
        if not expression or not expression.strip():
            raise ExpressionError("Expression is empty", expression)

        source = preprocess(expression.strip()).strip()
        evaluator = SimpleEval(functions=_FUNCTIONS, names=_name_as_text)
        for node_type in _DISABLED_NODES:
            evaluator.nodes.pop(node_type, None)

        try:
            return evaluator.eval(source)
        except SyntaxError as exc:
            raise ExpressionError(f"Syntax error in expression: {exc.msg}", expression) from exc
        except InvalidExpression as exc:
            raise ExpressionError(str(exc), expression) from exc
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise ExpressionError(f"Expression evaluation failed: {exc}", expression) from exc

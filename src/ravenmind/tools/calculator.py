"""Arithmetic tool backed by a restricted AST evaluator."""

import ast
import math
import operator
import re
from typing import Any

from ravenmind.tools.base import ToolResult
from ravenmind.tools.registry import tool

MAX_EXPRESSION_LENGTH = 500
# Guard against huge powers like 9**9**9
MAX_EXPONENT = 10_000
# Integer results are bounded before they are computed
MAX_RESULT_BITS = 10_000
MAX_FACTORIAL = 1000

SAFE_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.FloorDiv: operator.floordiv,
}
SAFE_UNARY_OPS = {ast.UAdd: lambda v: v, ast.USub: lambda v: -v}
SAFE_NAMES: dict[str, Any] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    **{
        name: getattr(math, name)
        for name in (
            "sqrt",
            "log",
            "log10",
            "log2",
            "sin",
            "cos",
            "tan",
            "asin",
            "acos",
            "atan",
            "exp",
            "ceil",
            "floor",
        )
    },
}

_ALLOWED_CHARS = re.compile(r"^[0-9+\-*/().^%\s,a-zA-Z_]+$")


def _bounded_factorial(n: Any) -> int:
    if isinstance(n, int) and n > MAX_FACTORIAL:
        raise OverflowError("Factorial argument too large")
    return math.factorial(n)


SAFE_NAMES["factorial"] = _bounded_factorial


def _check_power(base: Any, exponent: Any) -> None:
    """Reject a power whose integer result would exceed MAX_RESULT_BITS."""
    if abs(exponent) > MAX_EXPONENT:
        raise OverflowError("Exponent too large")
    if isinstance(base, int) and isinstance(exponent, int) and abs(base) > 1 and exponent > 0:
        if exponent * math.log2(abs(base)) > MAX_RESULT_BITS:
            raise OverflowError("Result too large")


def safe_eval_expr(expr: str) -> float | int:
    """Evaluate an arithmetic expression without attribute access or imports.

    ``^`` is treated as exponentiation.

    Raises:
        ValueError: If the expression uses anything outside the allowed set
        OverflowError: If the result would be too large to compute cheaply
        SyntaxError: If the expression does not parse
    """
    tree = ast.parse(expr.replace("^", "**"), mode="eval")

    def _eval(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            return node.value
        if isinstance(node, ast.BinOp) and type(node.op) in SAFE_BIN_OPS:
            left, right = _eval(node.left), _eval(node.right)
            if isinstance(node.op, ast.Pow):
                _check_power(left, right)
            result = SAFE_BIN_OPS[type(node.op)](left, right)
            if isinstance(result, int) and result.bit_length() > MAX_RESULT_BITS:
                raise OverflowError("Result too large")
            return result
        if isinstance(node, ast.UnaryOp) and type(node.op) in SAFE_UNARY_OPS:
            return SAFE_UNARY_OPS[type(node.op)](_eval(node.operand))
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
            if node.keywords:
                raise ValueError("Keyword arguments not allowed")
            func = SAFE_NAMES.get(node.func.id)
            if not callable(func):
                raise ValueError(f"Unknown function: {node.func.id}")
            return func(*[_eval(arg) for arg in node.args])
        if isinstance(node, ast.Name):
            if node.id in SAFE_NAMES and not callable(SAFE_NAMES[node.id]):
                return SAFE_NAMES[node.id]
            raise ValueError(f"Unknown name: {node.id}")
        raise ValueError("Disallowed expression")

    return _eval(tree)


def format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@tool(description="Perform mathematical calculations: arithmetic, powers, trigonometry, logarithms")
async def calculate(expression: str) -> ToolResult:
    """Evaluate a math expression.

    Args:
        expression: Mathematical expression to evaluate (e.g., '2 + 2 * 3', 'sin(45)', 'log(100)')
    """
    expr = (expression or "").strip()
    if not expr:
        return ToolResult.fail("Expression cannot be empty.")
    if len(expr) > MAX_EXPRESSION_LENGTH:
        return ToolResult.fail("Expression is too long.")
    if not _ALLOWED_CHARS.match(expr):
        return ToolResult.fail("Expression contains invalid characters.")

    try:
        result = safe_eval_expr(expr)
    except ZeroDivisionError:
        return ToolResult.fail("Division by zero.")
    except OverflowError:
        return ToolResult.fail("Result is too large.")
    except (ValueError, SyntaxError, TypeError):
        return ToolResult.fail("Invalid expression.")

    if isinstance(result, bool) or not isinstance(result, (int, float)):
        return ToolResult.fail("Invalid result.")
    if isinstance(result, float) and not math.isfinite(result):
        return ToolResult.fail("Invalid result.")

    return ToolResult.ok(f"{expr} = {format_number(result)}")

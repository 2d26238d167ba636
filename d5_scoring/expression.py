"""
Arithmetic expression evaluator for formula metrics.

Expressions are parsed with Python's own grammar and then restricted to a
whitelist of node types: numeric literals, variable names, parentheses,
``+ - * /``, exponentiation (``**`` or ``^``) and unary sign. Anything else
(calls, attribute access, comparisons, strings, booleans) is rejected before
evaluation, so untrusted formulas never reach ``eval``.

Parsed trees are cached and never mutated; evaluation keeps all state on the
call stack and is safe to run concurrently with different scopes.
"""
import ast
import math
import operator
from functools import lru_cache
from typing import Dict, List, Mapping, Optional

from core.exceptions import EvaluationError

from .constants import EXPRESSION_CONSTANTS, MAX_EXPRESSION_LENGTH

EXPRESSION_CACHE_SIZE = 256

BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

UNARY_OPS = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

CONSTANT_VALUES = {"pi": math.pi, "e": math.e}

_STRUCTURAL_NODES = (ast.Expression, ast.BinOp, ast.UnaryOp, ast.Constant, ast.Name, ast.Load)


def _check_node(node: ast.AST, expression: str) -> None:
    """Reject any node outside the arithmetic whitelist."""
    if isinstance(node, ast.Constant):
        value = node.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EvaluationError(f"Unsupported literal: {value!r}", expression=expression)
        return
    if isinstance(node, _STRUCTURAL_NODES):
        return
    if type(node) in BINARY_OPS or type(node) in UNARY_OPS:
        return
    raise EvaluationError(f"Unsupported syntax: {type(node).__name__}", expression=expression)


@lru_cache(maxsize=EXPRESSION_CACHE_SIZE)
def compile_expression(expression: str) -> ast.Expression:
    """
    Parse and whitelist-check an expression.

    Args:
        expression: Formula text, e.g. ``"0.5*cost + 0.5*quality"``

    Returns:
        Parsed expression tree

    Raises:
        EvaluationError: If the expression is empty, too long or not plain arithmetic
    """
    if not isinstance(expression, str) or not expression.strip():
        raise EvaluationError("Expression cannot be empty", expression=expression)
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise EvaluationError(
            f"Expression longer than {MAX_EXPRESSION_LENGTH} characters",
            expression=expression[:50] + "...",
        )

    source = expression.strip().replace("^", "**")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise EvaluationError(f"Invalid expression syntax: {e.msg}", expression=expression) from e
    except (ValueError, RecursionError, MemoryError) as e:
        raise EvaluationError(f"Invalid expression: {e}", expression=expression) from e

    for node in ast.walk(tree):
        _check_node(node, expression)

    return tree


def _finite(value: float, expression: str) -> float:
    if isinstance(value, complex):
        raise EvaluationError("Result is not a real number", expression=expression)
    if not math.isfinite(value):
        raise EvaluationError("Result is not finite", expression=expression)
    return value


def _eval_node(node: ast.AST, scope: Mapping[str, float], expression: str) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, scope, expression)
    elif isinstance(node, ast.Constant):
        try:
            return float(node.value)
        except OverflowError:
            raise EvaluationError("Numeric literal out of range", expression=expression)
    elif isinstance(node, ast.Name):
        if node.id in scope:
            try:
                return float(scope[node.id])
            except (TypeError, ValueError):
                raise EvaluationError(f"Variable is not numeric: {node.id}", expression=expression, variable=node.id)
        if node.id in CONSTANT_VALUES:
            return CONSTANT_VALUES[node.id]
        raise EvaluationError(f"Unknown variable: {node.id}", expression=expression, variable=node.id)
    elif isinstance(node, ast.UnaryOp):
        operand = _eval_node(node.operand, scope, expression)
        return UNARY_OPS[type(node.op)](operand)
    elif isinstance(node, ast.BinOp):
        left = _eval_node(node.left, scope, expression)
        right = _eval_node(node.right, scope, expression)
        try:
            result = BINARY_OPS[type(node.op)](left, right)
        except ZeroDivisionError:
            raise EvaluationError("Division by zero", expression=expression)
        except OverflowError:
            raise EvaluationError("Numeric overflow", expression=expression)
        return _finite(result, expression)
    raise EvaluationError(f"Unsupported syntax: {type(node).__name__}", expression=expression)


class ExpressionEvaluator:
    """Evaluates restricted arithmetic expressions over named variables."""

    def evaluate(self, expression: str, scope: Optional[Mapping[str, float]] = None) -> float:
        """
        Evaluate an expression with the given variable values.

        Args:
            expression: Arithmetic expression
            scope: Variable name to value; ``pi`` and ``e`` are always available

        Returns:
            Finite float result

        Raises:
            EvaluationError: On syntax errors, unknown names, division by zero
                or a non-finite result
        """
        tree = compile_expression(expression)
        try:
            result = _eval_node(tree, scope or {}, expression)
        except RecursionError as e:
            raise EvaluationError("Expression nested too deeply", expression=expression) from e
        return _finite(result, expression)

    def free_variables(self, expression: str) -> List[str]:
        """
        Names referenced by an expression, in order of first appearance.

        The constants ``pi`` and ``e`` are excluded. The expression is parsed
        but never executed.
        """
        tree = compile_expression(expression)
        names = sorted(
            (node for node in ast.walk(tree) if isinstance(node, ast.Name)),
            key=lambda node: (node.lineno, node.col_offset),
        )
        seen: Dict[str, None] = {}
        for node in names:
            if node.id not in EXPRESSION_CONSTANTS:
                seen.setdefault(node.id, None)
        return list(seen)

    def validate_syntax(self, expression: str) -> List[str]:
        """Return syntax errors for an expression (empty if valid)."""
        try:
            compile_expression(expression)
        except EvaluationError as e:
            return [e.message]
        return []


# Global evaluator instance
_evaluator_instance: Optional[ExpressionEvaluator] = None


def get_expression_evaluator() -> ExpressionEvaluator:
    """Get or create the global expression evaluator instance."""
    global _evaluator_instance

    if _evaluator_instance is None:
        _evaluator_instance = ExpressionEvaluator()

    return _evaluator_instance


def evaluate_expression(expression: str, scope: Optional[Mapping[str, float]] = None) -> float:
    """Convenience function to evaluate an expression."""
    return get_expression_evaluator().evaluate(expression, scope)


def free_variables(expression: str) -> List[str]:
    """Convenience function to list an expression's free variables."""
    return get_expression_evaluator().free_variables(expression)

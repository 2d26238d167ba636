"""
Authoring-time validation of formula metrics.

A formula may only reference metrics defined strictly before it plus the
reserved ``score`` variable. Checking every free variable against the
growing prefix of metric names keeps evaluation a single left-to-right pass.
"""
from typing import Iterable, List, Sequence

from core.exceptions import EvaluationError, ValidationError
from core.logging import get_logger

from .constants import SCORE_VARIABLE
from .expression import free_variables
from .types import MetricType

logger = get_logger(__name__)


def metric_names(metric) -> List[str]:
    """Names a metric can be referenced by: its key, and its label when usable as a variable."""
    names = [metric.key]
    label = (getattr(metric, "label", None) or "").strip()
    if label and label != metric.key and label.isidentifier():
        names.append(label)
    return names


def validate_formula(formula: str, allowed_names: Iterable[str], metric_key: str = None) -> List[str]:
    """
    Check that a formula only references allowed names.

    The formula is parsed but never executed, so numerically broken formulas
    (e.g. a division by zero) pass validation.

    Args:
        formula: Formula text
        allowed_names: Names legally in scope; ``pi`` and ``e`` are always allowed
        metric_key: Metric being validated, for error reporting

    Returns:
        The formula's free variables in order of appearance

    Raises:
        ValidationError: If the formula cannot be parsed or references an unknown name
    """
    try:
        variables = free_variables(formula)
    except EvaluationError as e:
        raise ValidationError(
            f"Invalid formula for metric '{metric_key}': {e.message}" if metric_key else f"Invalid formula: {e.message}",
            field="formula",
            metric=metric_key,
            formula=formula,
        ) from e

    allowed = set(allowed_names)
    for name in variables:
        if name not in allowed:
            raise ValidationError(
                f"Formula references unknown variable '{name}'",
                field="formula",
                metric=metric_key,
                formula=formula,
                variable=name,
            )
    return variables


def validate_metric_formulas(metrics: Sequence) -> None:
    """
    Validate every formula metric against the metrics defined before it.

    Args:
        metrics: Ordered metric definitions (objects with key, label, type and formula)

    Raises:
        ValidationError: On the first formula that is missing, unparsable or
            references a name that is not defined earlier
    """
    available: List[str] = [SCORE_VARIABLE]
    for metric in metrics:
        if metric.type == MetricType.FORMULA:
            if not metric.formula or not metric.formula.strip():
                raise ValidationError(
                    f"Formula metric '{metric.key}' has no formula", field="formula", metric=metric.key
                )
            validate_formula(metric.formula, available, metric_key=metric.key)
            logger.debug(f"Formula for metric '{metric.key}' validated")
        available.extend(metric_names(metric))

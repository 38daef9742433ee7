"""Field conditions: disabled/visible/set-value rules and their merging."""

from formality.conditions.evaluate import (
    condition_matches,
    evaluate_conditions,
    infer_fields_from_conditions,
    merge_condition_results,
    trigger_matches,
)
from formality.conditions.types import (
    UNSET,
    ConditionDescriptor,
    ConditionResult,
    FieldMatcher,
)

__all__ = [
    "UNSET",
    "ConditionDescriptor",
    "ConditionResult",
    "FieldMatcher",
    "condition_matches",
    "evaluate_conditions",
    "infer_fields_from_conditions",
    "merge_condition_results",
    "trigger_matches",
]

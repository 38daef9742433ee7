"""Formality: reactive expression and condition engine for data-driven forms.

Usage:
    from formality import build_evaluation_context, evaluate, evaluate_conditions

    ctx = build_evaluation_context({"count": 10})
    evaluate("count > 5", ctx)  # True

    evaluate_conditions(
        [{"when": "signed", "truthy": True, "disabled": True}],
        {"signed": True},
    ).disabled  # True
"""

from formality.autosave import (
    AutoSaveCoordinator,
    AutoSaveHost,
    AutoSaveState,
    SaveOutcome,
)
from formality.conditions import (
    UNSET,
    ConditionDescriptor,
    ConditionResult,
    FieldMatcher,
    condition_matches,
    evaluate_conditions,
    infer_fields_from_conditions,
    merge_condition_results,
    trigger_matches,
)
from formality.config import EngineConfig
from formality.expressions import (
    ExpressionCache,
    FieldState,
    FormState,
    build_evaluation_context,
    build_field_context,
    build_form_context,
    clear_expression_cache,
    evaluate,
    evaluate_descriptor,
    get_property,
    infer_fields_from_descriptor,
    infer_fields_from_expression,
    parse,
    unwrap,
)
from formality.form import (
    FieldDefinition,
    FieldView,
    Form,
    FormDefinition,
    FormLoader,
    FormStore,
    GroupDefinition,
    InputDefinition,
    resolve_initial_values,
)
from formality.subscriptions import SubscriptionGraph
from formality.validation import (
    FieldError,
    ValidatorRegistry,
    register_builtin_validators,
    resolve_error_message,
    run_validator,
)

__all__ = [
    # Auto-save
    "AutoSaveCoordinator",
    "AutoSaveHost",
    "AutoSaveState",
    "SaveOutcome",
    # Conditions
    "UNSET",
    "ConditionDescriptor",
    "ConditionResult",
    "FieldMatcher",
    "condition_matches",
    "evaluate_conditions",
    "infer_fields_from_conditions",
    "merge_condition_results",
    "trigger_matches",
    # Config
    "EngineConfig",
    # Expressions
    "ExpressionCache",
    "FieldState",
    "FormState",
    "build_evaluation_context",
    "build_field_context",
    "build_form_context",
    "clear_expression_cache",
    "evaluate",
    "evaluate_descriptor",
    "get_property",
    "infer_fields_from_descriptor",
    "infer_fields_from_expression",
    "parse",
    "unwrap",
    # Forms
    "FieldDefinition",
    "FieldView",
    "Form",
    "FormDefinition",
    "FormLoader",
    "FormStore",
    "GroupDefinition",
    "InputDefinition",
    "resolve_initial_values",
    # Subscriptions
    "SubscriptionGraph",
    # Validation
    "FieldError",
    "ValidatorRegistry",
    "register_builtin_validators",
    "resolve_error_message",
    "run_validator",
]

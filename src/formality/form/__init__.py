"""Form definitions, state and the Form adapter."""

from formality.form.definition import (
    DEFAULT_INPUT_TYPE,
    FieldDefinition,
    FormDefinition,
    GroupDefinition,
    InputDefinition,
    resolve_initial_values,
)
from formality.form.form import FieldView, Form, GroupState
from formality.form.loader import FormLoader
from formality.form.store import FormStore

__all__ = [
    "DEFAULT_INPUT_TYPE",
    "FieldDefinition",
    "FieldView",
    "Form",
    "FormDefinition",
    "FormLoader",
    "FormStore",
    "GroupDefinition",
    "GroupState",
    "InputDefinition",
    "resolve_initial_values",
]

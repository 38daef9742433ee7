"""In-memory form state.

FormStore keeps values, defaults, touched/dirty flags, errors and the
fields currently validating. It is the AutoSaveHost the coordinator
drives: ``set_value`` starts an on-change validation of that one field,
and a validation result that arrives after a newer one was started is
ignored.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from formality.expressions.context import FormState
from formality.expressions.evaluator import strict_equals
from formality.form.definition import FormDefinition, resolve_initial_values
from formality.validation.messages import (
    create_error_messages,
    get_error_type,
    resolve_error_message,
)
from formality.validation.types import FieldError
from formality.validation.validate import is_valid, run_validator

logger = logging.getLogger(__name__)

SubmitFn = Callable[[dict[str, Any]], Awaitable[None] | None]


class FormStore:
    """Field values and metadata for one form instance."""

    def __init__(
        self,
        definition: FormDefinition,
        record: Mapping[str, Any] | None = None,
        default_values: Mapping[str, Any] | None = None,
        on_submit: SubmitFn | None = None,
    ):
        self.definition = definition
        self.record = dict(record or {})
        self.default_values = resolve_initial_values(definition, record, default_values)
        self.values: dict[str, Any] = dict(self.default_values)
        self.errors: dict[str, FieldError] = {}
        self.touched: set[str] = set()
        self.dirty: set[str] = set()
        self.disabled: set[str] = set()
        self.error_messages = create_error_messages(definition.error_messages)
        self.on_submit = on_submit
        self.submitted: list[dict[str, Any]] = []

        self._running: dict[str, int] = {}
        self._latest: dict[str, int] = {}
        self._token = 0
        self._tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # AutoSaveHost
    # -------------------------------------------------------------------------

    def set_value(self, name: str, value: Any, touch: bool = True, validate: bool = True) -> None:
        """Store a value, update touched/dirty and validate the field.

        Validation is scheduled on the running loop; without one (plain
        synchronous use) the field is simply not validated.
        """
        self.values[name] = value
        if touch:
            self.touched.add(name)
        if strict_equals(value, self.default_values.get(name)):
            self.dirty.discard(name)
        else:
            self.dirty.add(name)

        if not validate:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, not validating '%s'", name)
            return

        token = self._begin(name)
        task = loop.create_task(self._validate(name, value, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def get_values(self) -> dict[str, Any]:
        return dict(self.values)

    def is_validating(self, name: str) -> bool:
        return self._running.get(name, 0) > 0

    def get_error(self, name: str) -> FieldError | None:
        return self.errors.get(name)

    async def trigger_validation(self, names: Iterable[str]) -> bool:
        """Validate exactly the named fields; True when all pass."""
        results = await asyncio.gather(*(self.validate_field(name) for name in names))
        return all(results)

    async def submit(self, values: dict[str, Any]) -> None:
        self.submitted.append(dict(values))
        if self.on_submit is None:
            return
        result = self.on_submit(values)
        if inspect.isawaitable(result):
            await result

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    async def validate_field(self, name: str) -> bool:
        """Validate the field's current value now."""
        token = self._begin(name)
        return await self._validate(name, self.values.get(name), token)

    async def wait_validations(self) -> None:
        """Wait for every scheduled on-change validation."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _begin(self, name: str) -> int:
        self._token += 1
        self._latest[name] = self._token
        self._running[name] = self._running.get(name, 0) + 1
        return self._token

    async def _validate(self, name: str, value: Any, token: int) -> bool:
        try:
            error = await self._run_validators(name, value)
        finally:
            self._running[name] -= 1

        if self._latest.get(name) != token:
            logger.debug("Ignoring stale validation result for '%s'", name)
            return error is None

        if error is None:
            self.errors.pop(name, None)
        else:
            self.errors[name] = error
        return error is None

    async def _run_validators(self, name: str, value: Any) -> FieldError | None:
        """Field validator first, then the input type's validator."""
        field_def = self.definition.fields.get(name)
        specs = [
            field_def.validator if field_def else None,
            self.definition.input_for(name).validator,
        ]

        for spec in specs:
            if spec is None:
                continue
            result = await run_validator(spec, value, self.get_values())
            if not is_valid(result):
                return FieldError(
                    get_error_type(result) or "validate",
                    resolve_error_message(result, self.error_messages),
                )
        return None

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def form_state(self) -> FormState:
        return FormState(
            values=dict(self.values),
            default_values=dict(self.default_values),
            record=dict(self.record),
            errors=dict(self.errors),
            touched=set(self.touched),
            dirty=set(self.dirty),
            validating={name for name, count in self._running.items() if count > 0},
            disabled=set(self.disabled),
        )

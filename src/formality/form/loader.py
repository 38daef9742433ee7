"""Load form definitions from YAML files.

A form file looks like:

    form: contract
    title: New contract
    selectTitle: 'client ? "Contract for " + client.name : "New contract"'
    autoSave: true
    debounce: 500
    inputs:
      textField: {defaultValue: ""}
      switch: {defaultValue: false}
    groups:
      billing:
        conditions:
          - {when: signed, truthy: true, disabled: true}
    fields:
      client: {type: autocomplete}
      signed: {type: switch}
      amount:
        group: billing
        validator: [required, {min: 0}]
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from formality.form.definition import FormDefinition
from formality.validation.registry import ValidatorRegistry
from formality.validation.validate import register_builtin_validators


class FormLoader:
    """Loads form definitions from a directory of YAML files."""

    def __init__(self, forms_path: Path | None = None):
        self.forms_path = forms_path
        self.forms: dict[str, FormDefinition] = {}

    def load_all(self) -> None:
        """Load every *.yaml / *.yml file under forms_path."""
        if self.forms_path is None or not self.forms_path.exists():
            return

        files = sorted([*self.forms_path.glob("*.yaml"), *self.forms_path.glob("*.yml")])
        for yaml_file in files:
            definition = self.load_file(yaml_file)
            self.forms[definition.name] = definition

    def load_file(self, path: Path) -> FormDefinition:
        """Load one form definition file.

        Raises:
            ValueError: If the file is not valid YAML or not a valid form
        """
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e

        if not data:
            raise ValueError(f"Form file {path} is empty")
        if isinstance(data, Mapping) and "form" not in data and "name" not in data:
            data = {**data, "form": path.stem}

        return self.load_dict(data)

    def load_dict(self, data: Mapping[str, Any]) -> FormDefinition:
        """Build and check a definition from an already-parsed mapping."""
        definition = FormDefinition.from_dict(data)
        self._check_validators(definition)
        return definition

    def _check_validators(self, definition: FormDefinition) -> None:
        """Reject ``{name: args}`` specs whose factory is not registered."""
        register_builtin_validators()

        specs = [f.validator for f in definition.fields.values()]
        specs.extend(i.validator for i in definition.inputs.values())

        for spec in specs:
            for name in self._factory_names(spec):
                if not ValidatorRegistry.is_registered(name):
                    raise ValueError(
                        f"Form '{definition.name}' uses unknown validator '{name}'. "
                        "Available validators: " + ", ".join(ValidatorRegistry.list_registered())
                    )

    def _factory_names(self, spec: Any) -> list[str]:
        if isinstance(spec, Mapping):
            return [str(name) for name in spec]
        if isinstance(spec, (list, tuple)):
            names: list[str] = []
            for item in spec:
                names.extend(self._factory_names(item))
            return names
        return []

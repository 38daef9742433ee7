"""Shared fixtures for the Formality test suite."""

import pytest

from formality.expressions import clear_expression_cache
from formality.validation import ValidatorRegistry, register_builtin_validators


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty expression cache."""
    clear_expression_cache()
    yield
    clear_expression_cache()


@pytest.fixture(autouse=True)
def builtin_validators():
    """Reset the validator registry to just the built-ins."""
    ValidatorRegistry.clear()
    register_builtin_validators()
    yield
    ValidatorRegistry.clear()

"""
Shared fixtures for moraine tests.
"""

import pytest

from moraine.core.context import ProvisioningContext
from moraine.providers.memory import MemoryBackend

README_TEXT = "# Test stack\n\nProvisioned by moraine.\n"


@pytest.fixture
def workdir(tmp_path):
    """Stack directory holding the README the readme stage exports."""
    (tmp_path / "Pulumi.README.md").write_text(README_TEXT)
    return tmp_path


@pytest.fixture
def make_context(workdir):
    """Factory for contexts over a plain configuration mapping."""

    def _make(values=None):
        return ProvisioningContext.from_mapping(
            {"gcp:project": "demo", **(values or {})},
            stack="test",
            workdir=workdir,
        )

    return _make


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def backend():
    return MemoryBackend(project="demo")

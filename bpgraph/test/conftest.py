import pytest

from bpgraph.compiler import CompilerOptions
from bpgraph.core import BlueprintStore, BlueprintType


@pytest.fixture
def store():
    return BlueprintStore()


@pytest.fixture
def options():
    return CompilerOptions(include_timestamp=False)


@pytest.fixture
def function_bp(store):
    """A function blueprint with its scaffolded function_start node."""
    return store.create_blueprint("Demo", BlueprintType.FUNCTION)

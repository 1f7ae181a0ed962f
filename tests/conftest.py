import pytest


@pytest.fixture
def workspace(tmp_path):
    """An empty workspace root with symlinks already resolved."""
    root = tmp_path.resolve() / "workspace"
    root.mkdir()
    return root

"""
Shared pytest fixtures for the weighted routing test suite.
"""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
import yaml

from weighted_routing.config import TopologyConfig, default_topology
from weighted_routing.deployment.infrastructure import InfrastructureStack
from weighted_routing.service_mesh.core import MeshEnvironment, create_environment


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def stack() -> InfrastructureStack:
    """Empty stack."""
    return InfrastructureStack("TestStack", description="test stack")


@pytest.fixture
def environment(stack) -> MeshEnvironment:
    """Shared mesh environment declared in ``stack``."""
    return create_environment(stack, mesh_name="test-mesh")


@pytest.fixture
def topology() -> TopologyConfig:
    """Reference topology: serviceA -> serviceB (v1:v2 = 4:1)."""
    return default_topology()


@pytest.fixture
def config_dir(temp_dir, topology) -> Path:
    """Config directory holding the reference topology as base.yaml."""
    path = temp_dir / "config"
    path.mkdir()
    (path / "base.yaml").write_text(yaml.safe_dump(topology.to_dict(), sort_keys=False))
    return path


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep environment-driven settings from leaking into tests."""
    for name in (
        "TOPOLOGY_ENV",
        "SERVICE_VERSION",
        "SERVICE_B_URL",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "ENABLE_TRACE_LOGGING",
        "ENABLE_CORRELATION_LOGGING",
    ):
        monkeypatch.delenv(name, raising=False)

"""
Tests for the resource graph and template synthesis.
"""

import json
from datetime import timedelta

import pytest
import yaml

from weighted_routing.deployment.core import ContainerHealthCheck, HealthCheck, validate_port
from weighted_routing.deployment.infrastructure import (
    InfrastructureManager,
    InfrastructureStack,
    ResourceType,
    get_att,
    logical_id,
    ref,
    scoped_logical_id,
)
from weighted_routing.errors import DuplicateNameError, ValidationError


@pytest.mark.unit
class TestInfrastructureStack:
    """Test resource declarations and dependencies."""

    def test_add_resource(self, stack):
        resource = stack.add_resource("Mesh", ResourceType.MESH, {"MeshName": "m"})
        assert stack.get_resource("Mesh") is resource
        assert stack.has_resource("Mesh")
        assert stack.resource_count() == 1

    def test_duplicate_logical_id(self, stack):
        stack.add_resource("Mesh", ResourceType.MESH)
        with pytest.raises(DuplicateNameError):
            stack.add_resource("Mesh", ResourceType.MESH)

    def test_dependency_on_unknown_resource(self, stack):
        stack.add_resource("Cluster", ResourceType.ECS_CLUSTER)
        with pytest.raises(ValidationError, match="undeclared"):
            stack.add_dependency("Cluster", "Missing")

    def test_dependencies_are_deduplicated_and_sorted(self, stack):
        stack.add_resource("B", ResourceType.ECS_CLUSTER)
        stack.add_resource("A", ResourceType.ECS_CLUSTER)
        stack.add_resource("Service", ResourceType.FARGATE_SERVICE, depends_on=["B", "A"])
        stack.add_dependency("Service", "B")

        assert stack.to_template()["Resources"]["Service"]["DependsOn"] == ["A", "B"]

    def test_resources_of_type_keeps_declaration_order(self, stack):
        stack.add_resource("Second", ResourceType.SECURITY_GROUP)
        stack.add_resource("Cluster", ResourceType.ECS_CLUSTER)
        stack.add_resource("First", ResourceType.SECURITY_GROUP)

        ids = [r.logical_id for r in stack.resources_of_type(ResourceType.SECURITY_GROUP)]
        assert ids == ["Second", "First"]

    def test_duplicate_output(self, stack):
        stack.add_output("Endpoint", "value")
        with pytest.raises(DuplicateNameError):
            stack.add_output("Endpoint", "other")

    def test_template_shape(self, stack):
        stack.add_resource("Cluster", ResourceType.ECS_CLUSTER, {"ClusterSettings": []})
        stack.add_output("ClusterName", ref("Cluster"), description="cluster")

        template = stack.to_template()
        assert template["AWSTemplateFormatVersion"] == "2010-09-09"
        assert template["Description"] == "test stack"
        assert template["Resources"]["Cluster"] == {
            "Type": "AWS::ECS::Cluster",
            "Properties": {"ClusterSettings": []},
        }
        assert template["Outputs"]["ClusterName"] == {
            "Value": {"Ref": "Cluster"},
            "Description": "cluster",
        }

    def test_template_without_outputs(self, stack):
        assert "Outputs" not in stack.to_template()

    def test_stack_requires_name(self):
        with pytest.raises(ValidationError):
            InfrastructureStack("")


@pytest.mark.unit
class TestReferences:
    """Test intrinsic reference helpers."""

    def test_ref_and_get_att(self):
        assert ref("VPC") == {"Ref": "VPC"}
        assert get_att("Mesh", "MeshName") == {"Fn::GetAtt": ["Mesh", "MeshName"]}

    def test_logical_id_strips_punctuation(self):
        assert logical_id("RouteGroup", "serviceB_v1") == "RouteGroupserviceBv1"

    def test_logical_id_cannot_be_empty(self):
        with pytest.raises(ValidationError):
            logical_id("_", "-")

    def test_scoped_logical_id_keeps_plain_names(self):
        assert scoped_logical_id("serviceA") == "serviceA"
        assert scoped_logical_id("", "serviceA") == "serviceA"

    def test_scoped_logical_id_is_stable(self):
        first = scoped_logical_id("RouteGroupsvc", "v_1")
        assert first == scoped_logical_id("RouteGroupsvc", "v_1")
        assert first.startswith("RouteGroupsvcv1")

    @pytest.mark.parametrize(
        "left, right",
        [
            (("v_1",), ("v1",)),
            (("RouteGroupsvc", "v_1"), ("RouteGroupsvc", "v1")),
            (("RouteGroupab", "c"), ("RouteGroupa", "bc")),
        ],
    )
    def test_scoped_logical_id_separates_paths(self, left, right):
        assert scoped_logical_id(*left) != scoped_logical_id(*right)


@pytest.mark.unit
class TestInfrastructureManager:
    """Test writing templates to disk."""

    def test_write_json(self, stack, temp_dir):
        stack.add_resource("Cluster", ResourceType.ECS_CLUSTER)
        manager = InfrastructureManager(temp_dir / "out")

        path = manager.write_stack(stack)

        assert path == temp_dir / "out" / "TestStack.template.json"
        assert json.loads(path.read_text()) == stack.to_template()

    def test_write_yaml(self, stack, temp_dir):
        stack.add_resource("Cluster", ResourceType.ECS_CLUSTER)
        path = InfrastructureManager(temp_dir).write_stack(stack, "yaml")

        assert path.suffix == ".yaml"
        assert yaml.safe_load(path.read_text()) == stack.to_template()

    def test_unsupported_format(self, stack, temp_dir):
        with pytest.raises(ValueError, match="Unsupported"):
            InfrastructureManager(temp_dir).render(stack, "toml")


@pytest.mark.unit
class TestHealthChecks:
    """Test health check rendering and validation."""

    def test_mesh_spec(self):
        spec = HealthCheck().to_mesh_spec(3000)
        assert spec == {
            "Protocol": "http",
            "Path": "/health",
            "Port": 3000,
            "IntervalMillis": 5000,
            "TimeoutMillis": 2000,
            "HealthyThreshold": 3,
            "UnhealthyThreshold": 2,
        }

    def test_mesh_spec_keeps_whole_milliseconds(self):
        check = HealthCheck(interval=timedelta(seconds=1.005), timeout=timedelta(milliseconds=999))
        spec = check.to_mesh_spec(3000)
        assert spec["IntervalMillis"] == 1005
        assert spec["TimeoutMillis"] == 999

    @pytest.mark.parametrize(
        "data",
        [
            {"path": "health"},
            {"interval": 0},
            {"timeout": -1},
            {"healthy_threshold": 0},
            {"unhealthy_threshold": True},
        ],
    )
    def test_invalid_health_checks(self, data):
        with pytest.raises(ValidationError):
            HealthCheck.from_dict(data).validate()

    def test_non_numeric_interval(self):
        with pytest.raises(ValidationError, match="seconds"):
            HealthCheck.from_dict({"interval": "5s"})

    def test_container_health_check(self):
        check = ContainerHealthCheck(command=["curl -s http://localhost:3000/health"])
        assert check.to_dict()["Command"] == ["CMD-SHELL", "curl -s http://localhost:3000/health"]
        assert check.to_dict()["Retries"] == 3

    @pytest.mark.parametrize("port", [1, 3000, 65535])
    def test_valid_ports(self, port):
        assert validate_port(port, "test") == port

    @pytest.mark.parametrize("port", [0, 65536, True, None, 80.0])
    def test_invalid_ports(self, port):
        with pytest.raises(ValidationError):
            validate_port(port, "test")

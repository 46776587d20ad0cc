"""
Configuration system for the weighted routing topology compiler.

This module provides:
- Dataclass sections describing route groups, routes and call edges
- Environment-based YAML configuration loading and merging
- Environment variable expansion
- Validation of the topology contract before anything is compiled
"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .deployment.core import HealthCheck, validate_port
from .errors import ConfigurationError, DuplicateNameError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_STACK_NAME = "WeightedRoutingStack"
DEFAULT_MESH_NAME = "weighted-routing-mesh"
DEFAULT_NAMESPACE = "cloudmap.local"
DEFAULT_HOSTED_ZONE = "appmesh.local"

# App Mesh accepts weighted target weights in 0..100
MAX_ROUTE_WEIGHT = 100


class Environment(Enum):
    """Supported environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


def _require_name(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} name must be a non-empty string, got {value!r}")
    if value != value.strip() or any(ch.isspace() for ch in value):
        raise ValidationError(f"{what} name must not contain whitespace: {value!r}")
    return value


def _section(data: dict[str, Any], key: str, kind: type, what: str) -> Any:
    """Fetch an optional mapping or list entry, rejecting any other shape."""
    value = data.get(key)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        shape = "mapping" if kind is dict else "list"
        raise ValidationError(f"{what} must be a {shape}, got {value!r}")
    return value


@dataclass
class RouteConfig:
    """One weighted route target: a replica name and its traffic share."""

    name: str
    weight: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RouteConfig":
        if not isinstance(data, dict):
            raise ValidationError(f"Route entry must be a mapping, got {data!r}")
        try:
            return cls(name=data["name"], weight=data["weight"])
        except KeyError as e:
            raise ValidationError(f"Route entry is missing {e.args[0]!r}: {data!r}") from None

    def validate(self) -> None:
        _require_name(self.name, "Route")
        if isinstance(self.weight, bool) or not isinstance(self.weight, int):
            raise ValidationError(f"Weight for {self.name} must be an integer, got {self.weight!r}")
        if not 0 <= self.weight <= MAX_ROUTE_WEIGHT:
            raise ValidationError(
                f"Weight for {self.name} must be between 0 and {MAX_ROUTE_WEIGHT}: {self.weight}"
            )


@dataclass
class GroupConfig:
    """A route group: one published name over weighted replicas."""

    name: str
    port: int
    routes: list[RouteConfig] = field(default_factory=list)
    health_check: HealthCheck = field(default_factory=HealthCheck)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GroupConfig":
        if not isinstance(data, dict):
            raise ValidationError(f"Group entry must be a mapping, got {data!r}")
        name = data.get("name")
        routes = _section(data, "routes", list, f"Routes of group {name!r}")
        health_check = _section(data, "health_check", dict, f"Health check of group {name!r}")
        return cls(
            name=data.get("name", ""),
            port=data.get("port", 3000),
            routes=[RouteConfig.from_dict(r) for r in routes],
            health_check=HealthCheck.from_dict(health_check),
        )

    def validate(self) -> None:
        _require_name(self.name, "Group")
        validate_port(self.port, f"group {self.name}")
        if not self.routes:
            raise ValidationError(f"Group {self.name} must declare at least one route")

        seen: set[str] = set()
        for route in self.routes:
            route.validate()
            if route.name in seen:
                raise DuplicateNameError(
                    f"Route {route.name} is declared twice in group {self.name}"
                )
            seen.add(route.name)

        if sum(route.weight for route in self.routes) <= 0:
            raise ValidationError(f"Group {self.name} must have a positive total weight")
        self.health_check.validate()

    @property
    def total_weight(self) -> int:
        return sum(route.weight for route in self.routes)


@dataclass
class EdgeConfig:
    """Directed may-call edge between two groups."""

    source: str
    target: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EdgeConfig":
        if not isinstance(data, dict):
            raise ValidationError(f"Edge entry must be a mapping, got {data!r}")
        try:
            return cls(source=data["from"], target=data["to"])
        except KeyError as e:
            raise ValidationError(f"Edge entry is missing {e.args[0]!r}: {data!r}") from None


@dataclass
class TopologyConfig:
    """Declarative description of the whole topology."""

    groups: list[GroupConfig] = field(default_factory=list)
    edges: list[EdgeConfig] = field(default_factory=list)
    expose: list[str] = field(default_factory=list)
    stack_name: str = DEFAULT_STACK_NAME
    mesh_name: str = DEFAULT_MESH_NAME
    namespace: str = DEFAULT_NAMESPACE
    hosted_zone: str = DEFAULT_HOSTED_ZONE
    max_azs: int = 2
    region: str | None = None
    public_port: int = 80

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TopologyConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("Topology configuration must be a mapping")
        stack = _section(data, "stack", dict, "Stack settings")
        expose = _section(data, "expose", list, "Exposed replicas")
        if not all(isinstance(name, str) for name in expose):
            raise ValidationError(f"Exposed replicas must be replica names, got {expose!r}")
        return cls(
            groups=[GroupConfig.from_dict(g) for g in _section(data, "groups", list, "Groups")],
            edges=[EdgeConfig.from_dict(e) for e in _section(data, "edges", list, "Edges")],
            expose=list(expose),
            stack_name=stack.get("name", DEFAULT_STACK_NAME),
            mesh_name=stack.get("mesh_name", DEFAULT_MESH_NAME),
            namespace=stack.get("namespace", DEFAULT_NAMESPACE),
            hosted_zone=stack.get("hosted_zone", DEFAULT_HOSTED_ZONE),
            max_azs=stack.get("max_azs", 2),
            region=stack.get("region"),
            public_port=stack.get("public_port", 80),
        )

    def validate(self) -> None:
        """Check the whole topology contract; raises on the first violation."""
        _require_name(self.stack_name, "Stack")
        _require_name(self.mesh_name, "Mesh")
        _require_name(self.namespace, "Namespace")
        _require_name(self.hosted_zone, "Hosted zone")
        validate_port(self.public_port, "the front door listener")
        if isinstance(self.max_azs, bool) or not isinstance(self.max_azs, int) or self.max_azs < 1:
            raise ValidationError(f"max_azs must be a positive integer, got {self.max_azs!r}")
        if not self.groups:
            raise ValidationError("Topology must declare at least one group")

        group_names: set[str] = set()
        published: set[str] = set()
        replica_names: set[str] = set()
        for group in self.groups:
            group.validate()
            if group.name in group_names:
                raise DuplicateNameError(f"Group {group.name} is declared twice")
            group_names.add(group.name)

            # Published names are case-normalized, so serviceB and ServiceB collide.
            if group.name.lower() in published:
                raise DuplicateNameError(
                    f"Group {group.name} publishes a name that is already taken"
                )
            published.add(group.name.lower())

            for route in group.routes:
                if route.name in replica_names:
                    raise DuplicateNameError(
                        f"Replica {route.name} is declared in more than one group"
                    )
                replica_names.add(route.name)

        seen_edges: set[tuple[str, str]] = set()
        for edge in self.edges:
            for end in (edge.source, edge.target):
                if end not in group_names:
                    raise ValidationError(f"Edge {edge.source} -> {edge.target} names unknown group {end!r}")
            if (edge.source, edge.target) in seen_edges:
                raise DuplicateNameError(f"Edge {edge.source} -> {edge.target} is declared twice")
            seen_edges.add((edge.source, edge.target))

        seen_exposed: set[str] = set()
        for replica in self.expose:
            if replica not in replica_names:
                raise ValidationError(f"Cannot expose unknown replica {replica!r}")
            if replica in seen_exposed:
                raise DuplicateNameError(f"Replica {replica} is exposed twice")
            seen_exposed.add(replica)

    def get_group(self, name: str) -> GroupConfig:
        for group in self.groups:
            if group.name == name:
                return group
        raise ValidationError(f"Unknown group {name!r}")

    def to_dict(self) -> dict[str, Any]:
        """Export in the same shape ``from_dict`` reads."""
        return {
            "stack": {
                "name": self.stack_name,
                "mesh_name": self.mesh_name,
                "namespace": self.namespace,
                "hosted_zone": self.hosted_zone,
                "max_azs": self.max_azs,
                "region": self.region,
                "public_port": self.public_port,
            },
            "groups": [
                {
                    "name": g.name,
                    "port": g.port,
                    "routes": [{"name": r.name, "weight": r.weight} for r in g.routes],
                    "health_check": g.health_check.to_dict(),
                }
                for g in self.groups
            ],
            "edges": [{"from": e.source, "to": e.target} for e in self.edges],
            "expose": list(self.expose),
        }


def default_topology() -> TopologyConfig:
    """Reference topology: a gateway calling a two-version service split 4:1."""
    return TopologyConfig(
        groups=[
            # 100% of the inbound traffic goes to the single node.
            GroupConfig(
                name="serviceA",
                port=3000,
                routes=[RouteConfig(name="serviceA", weight=1)],
            ),
            # 80% to version 1, 20% to version 2.
            GroupConfig(
                name="serviceB",
                port=3000,
                routes=[
                    RouteConfig(name="serviceB_v1", weight=4),
                    RouteConfig(name="serviceB_v2", weight=1),
                ],
            ),
        ],
        edges=[EdgeConfig(source="serviceA", target="serviceB")],
        expose=["serviceA"],
    )


class TopologyConfigLoader:
    """Loads ``base.yaml`` and ``<environment>.yaml`` from a config directory."""

    def __init__(
        self,
        config_path: Path | None = None,
        environment: str | Environment = Environment.DEVELOPMENT,
    ):
        self.config_path = Path(config_path) if config_path else Path("config")
        try:
            self.environment = Environment(environment)
        except ValueError:
            raise ConfigurationError(f"Unknown environment: {environment!r}") from None

    def load(self) -> TopologyConfig:
        """Load, merge, expand and validate the topology configuration."""
        base_config = self._load_optional(self.config_path / "base.yaml")
        env_config = self._load_optional(self.config_path / f"{self.environment.value}.yaml")

        if not base_config and not env_config:
            raise ConfigurationError(f"No topology configuration found in {self.config_path}")

        raw = self._expand_env_vars(self._deep_merge(base_config, env_config))
        config = TopologyConfig.from_dict(raw)
        config.validate()

        logger.info(
            "Loaded topology %s for %s: %d groups, %d edges",
            config.stack_name,
            self.environment.value,
            len(config.groups),
            len(config.edges),
        )
        return config

    def _load_optional(self, path: Path) -> dict[str, Any]:
        if path.exists():
            return self._load_yaml_file(path)
        logger.debug("Configuration file %s not found, skipping", path)
        return {}

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        """Load YAML configuration file."""
        try:
            with open(path, encoding="utf-8") as file:
                data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML file {path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        return data

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries. Lists are replaced, not concatenated."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively expand environment variables in configuration."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        if isinstance(obj, str):
            return self._expand_env_var_string(obj)
        return obj

    def _expand_env_var_string(self, value: str) -> str | int:
        """Expand environment variables in a string using ${VAR:-default} syntax.

        A value that is exactly one reference and expands to digits becomes an int,
        so ports and weights can come from the environment.
        """
        pattern = r"\$\{([^}]+)\}"

        def replace_var(match):
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default_value = var_expr.split(":-", 1)
                return os.environ.get(var_name, default_value)
            return os.environ.get(var_expr, "")

        expanded = re.sub(pattern, replace_var, value)
        if re.fullmatch(pattern, value) and expanded.isdigit():
            return int(expanded)
        return expanded


def get_environment() -> Environment:
    """Get current environment from the TOPOLOGY_ENV variable."""
    env_name = os.environ.get("TOPOLOGY_ENV", "development").lower()
    try:
        return Environment(env_name)
    except ValueError:
        logger.warning("Invalid environment %s, defaulting to development", env_name)
        return Environment.DEVELOPMENT


def load_topology_config(
    config_path: Path | None = None,
    environment: str | Environment | None = None,
) -> TopologyConfig:
    """Load the topology configuration, or the reference topology without a path."""
    if config_path is None:
        config = default_topology()
        config.validate()
        return config

    if environment is None:
        environment = get_environment()
    return TopologyConfigLoader(config_path, environment).load()

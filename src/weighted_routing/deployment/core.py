"""
Core deployment types shared by replica units and front doors.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from ..errors import ValidationError


def _seconds(value: Any, field_name: str) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"Health check {field_name} must be a number of seconds")
    return timedelta(seconds=value)


@dataclass
class HealthCheck:
    """Mesh health check polled against a replica's listener."""

    path: str = "/health"
    interval: timedelta = field(default_factory=lambda: timedelta(seconds=5))
    timeout: timedelta = field(default_factory=lambda: timedelta(seconds=2))
    healthy_threshold: int = 3
    unhealthy_threshold: int = 2
    protocol: str = "http"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HealthCheck":
        return cls(
            path=data.get("path", "/health"),
            interval=_seconds(data.get("interval", 5), "interval"),
            timeout=_seconds(data.get("timeout", 2), "timeout"),
            healthy_threshold=data.get("healthy_threshold", 3),
            unhealthy_threshold=data.get("unhealthy_threshold", 2),
            protocol=data.get("protocol", "http"),
        )

    def validate(self) -> None:
        if not self.path or not self.path.startswith("/"):
            raise ValidationError(f"Invalid health check path: {self.path!r}")
        if self.interval <= timedelta(0):
            raise ValidationError("Health check interval must be positive")
        if self.timeout <= timedelta(0):
            raise ValidationError("Health check timeout must be positive")
        for name in ("healthy_threshold", "unhealthy_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"Health check {name} must be a positive integer")

    def to_mesh_spec(self, port: int) -> dict[str, Any]:
        """Render as an App Mesh listener health check."""
        return {
            "Protocol": self.protocol,
            "Path": self.path,
            "Port": port,
            "IntervalMillis": self.interval // timedelta(milliseconds=1),
            "TimeoutMillis": self.timeout // timedelta(milliseconds=1),
            "HealthyThreshold": self.healthy_threshold,
            "UnhealthyThreshold": self.unhealthy_threshold,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "path": self.path,
            "interval": self.interval.total_seconds(),
            "timeout": self.timeout.total_seconds(),
            "healthy_threshold": self.healthy_threshold,
            "unhealthy_threshold": self.unhealthy_threshold,
            "protocol": self.protocol,
        }


@dataclass
class ContainerHealthCheck:
    """Docker-level health check for a task container."""

    command: list[str]
    start_period: int = 10
    interval: int = 5
    timeout: int = 2
    retries: int = 3

    def to_dict(self) -> dict[str, Any]:
        return {
            "Command": ["CMD-SHELL", *self.command],
            "StartPeriod": self.start_period,
            "Interval": self.interval,
            "Timeout": self.timeout,
            "Retries": self.retries,
        }


def validate_port(port: Any, owner: str) -> int:
    """Check that ``port`` is a usable TCP port."""
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValidationError(f"Port for {owner} must be an integer, got {port!r}")
    if port <= 0 or port > 65535:
        raise ValidationError(f"Invalid port number for {owner}: {port}")
    return port

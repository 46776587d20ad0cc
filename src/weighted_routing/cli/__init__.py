"""
Weighted routing CLI.

Compiles a topology configuration into a deployable template and shows
what a topology will build before anything is synthesized.
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .. import __version__
from ..config import Environment, TopologyConfig, load_topology_config
from ..deployment.infrastructure import InfrastructureManager
from ..errors import ConfigurationError
from ..topology import TopologyGraph

console = Console()

logger = logging.getLogger("weighted-routing")

ENVIRONMENT_CHOICES = [env.value for env in Environment]


def _load(config_dir: str | None, environment: str | None) -> TopologyConfig:
    try:
        return load_topology_config(Path(config_dir) if config_dir else None, environment)
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e


def config_options(func):
    """Attach the shared configuration options to a command."""
    func = click.option(
        "--environment",
        "-e",
        type=click.Choice(ENVIRONMENT_CHOICES),
        help="Configuration environment (defaults to TOPOLOGY_ENV)",
    )(func)
    func = click.option(
        "--config-dir",
        "-c",
        type=click.Path(exists=True, file_okay=False),
        help="Directory holding base.yaml and <environment>.yaml",
    )(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, verbose):
    """Weighted routing topology compiler

    Builds service mesh routing, service discovery and network permissions
    for groups of service replicas from one declarative topology.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if verbose:
        logging.getLogger("weighted_routing").setLevel(logging.DEBUG)


@cli.command()
@config_options
@click.option("--output", "-o", default="build", help="Directory the template is written to")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(InfrastructureManager.SUPPORTED_FORMATS),
    default="json",
    help="Template format",
)
def synth(config_dir, environment, output, fmt):
    """Compile the topology and write the stack template."""
    config = _load(config_dir, environment)
    try:
        compiled = TopologyGraph(config).compile()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    path = InfrastructureManager(Path(output)).write_stack(compiled.stack, fmt)
    console.print(f"[green]✓ Synthesized {compiled.stack.name}[/green]")
    console.print(f"Template: {path}")
    console.print(f"Resources: {compiled.stack.resource_count()}")
    for endpoint in compiled.endpoints:
        console.print(f"Front door: {endpoint.replica} (output {endpoint.output_name})")


@cli.command()
@config_options
def plan(config_dir, environment):
    """Show replicas, traffic shares, grants and front doors."""
    config = _load(config_dir, environment)
    try:
        topology_plan = TopologyGraph(config).plan()
    except ConfigurationError as e:
        raise click.ClickException(e.message) from e

    console.print(
        Panel.fit(Text(config.stack_name, style="bold blue"), subtitle=f"mesh {config.mesh_name}")
    )

    routes = Table(title="Routes")
    routes.add_column("Group", style="cyan")
    routes.add_column("Published name", style="white")
    routes.add_column("Replica", style="green")
    routes.add_column("Weight", justify="right")
    routes.add_column("Share", justify="right", style="yellow")
    for route in topology_plan.routes:
        shares = route.shares()
        for replica, weight in route.targets:
            routes.add_row(
                route.group,
                route.published_name,
                replica,
                str(weight),
                f"{shares[replica]:.0%}",
            )
    console.print(routes)

    grants = Table(title="Permission grants")
    grants.add_column("From", style="cyan")
    grants.add_column("To", style="green")
    grants.add_column("Port", justify="right")
    for grant in topology_plan.grants:
        grants.add_row(grant.source, grant.target, str(grant.port))
    console.print(grants)

    if topology_plan.front_doors:
        console.print(f"Front doors: {', '.join(topology_plan.front_doors)}")
    else:
        console.print("[yellow]No front doors[/yellow]")


@cli.command()
@config_options
def validate(config_dir, environment):
    """Load and validate the topology configuration."""
    config = _load(config_dir, environment)
    replicas = sum(len(group.routes) for group in config.groups)
    console.print(
        f"[green]✓ Topology {config.stack_name} is valid[/green] "
        f"({len(config.groups)} groups, {replicas} replicas, {len(config.edges)} edges)"
    )


def main() -> None:
    cli(obj={})


__all__ = ["cli", "main"]

"""``kubesim`` command-line entry point.

Commands:
    run       -- Run a headless simulation for N simulated seconds, print a JSON summary.
    snapshot  -- Run a headless simulation and write the cluster snapshot as JSON.
    incidents -- List the incident catalog.
    serve     -- Start the real-time loop and the REST API.

Options not given on the command line fall back to KUBESIM_* environment
variables (see ``kubesim.config``).
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from typing import Any

import click

from kubesim import __version__
from kubesim.config import load_config
from kubesim.incidents import INCIDENT_DEFINITIONS
from kubesim.models.config import KubeSimConfig
from kubesim.observability.logging import bind_simulation_context, setup_logging


def _configure(
    seed: int | None,
    nodes: int | None,
    random_incidents: bool,
    log_level: str | None,
) -> KubeSimConfig:
    config = load_config()
    if seed is not None:
        config.seed = seed
    if nodes is not None:
        config.bootstrap_nodes = nodes
    if random_incidents:
        config.incidents = dataclasses.replace(config.incidents, random_spawning=True)
    if log_level is not None:
        config.log = dataclasses.replace(config.log, level=log_level)
    setup_logging(config.log.level)
    bind_simulation_context(seed=config.seed)
    return config


def _simulate(config: KubeSimConfig, seconds: float, scripted: str | None) -> Any:
    from kubesim.app import SimulationApp

    app = SimulationApp(config, bootstrap=True)
    if scripted:
        with open(scripted, encoding="utf-8") as fh:
            app.incidents.load_scripted(json.load(fh))
    app.run_for(seconds)
    return app


def _common_options(func: Any) -> Any:
    options = [
        click.option("--seed", type=int, default=None, help="Random seed; same seed, same run."),
        click.option("--nodes", type=click.IntRange(0, 50), default=None, help="Number of worker nodes."),
        click.option("--random-incidents", is_flag=True, default=False, help="Enable random incident spawning."),
        click.option(
            "--log-level",
            type=click.Choice(["debug", "info", "warning", "error", "critical"]),
            default=None,
            help="Log level (logs go to stderr).",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="kubesim")
def cli() -> None:
    """KubeSim: a container-orchestration cluster simulator."""


@cli.command()
@click.option("--seconds", type=click.FloatRange(min=0.0), default=60.0, show_default=True, help="Simulated seconds.")
@click.option(
    "--scripted",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file with scripted incidents.",
)
@_common_options
def run(
    seconds: float,
    scripted: str | None,
    seed: int | None,
    nodes: int | None,
    random_incidents: bool,
    log_level: str | None,
) -> None:
    """Run a headless simulation and print a JSON summary."""
    config = _configure(seed, nodes, random_incidents, log_level)
    app = _simulate(config, seconds, scripted)
    click.echo(json.dumps(app.status(), indent=2, sort_keys=True))


@cli.command()
@click.option("--seconds", type=click.FloatRange(min=0.0), default=0.0, show_default=True, help="Simulated seconds.")
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None, help="Output file.")
@_common_options
def snapshot(
    seconds: float,
    output: str | None,
    seed: int | None,
    nodes: int | None,
    random_incidents: bool,
    log_level: str | None,
) -> None:
    """Write the cluster snapshot after SECONDS of simulation."""
    config = _configure(seed, nodes, random_incidents, log_level)
    app = _simulate(config, seconds, None)
    text = json.dumps(app.snapshot(), indent=2)
    if output is None:
        click.echo(text)
        return
    with open(output, "w", encoding="utf-8") as fh:
        fh.write(text)
    click.echo(f"wrote {len(app.store)} resources to {output}", err=True)


@cli.command()
@click.option("--category", default=None, help="Only show one category, e.g. Pod or Network.")
def incidents(category: str | None) -> None:
    """List the incident catalog."""
    for definition in INCIDENT_DEFINITIONS:
        if category is not None and definition.category.value.lower() != category.lower():
            continue
        click.echo(f"{definition.id:<32} sev={definition.severity}  {definition.category.value:<14} {definition.name}")


@cli.command()
@click.option("--host", default=None, help="API bind address.")
@click.option("--port", type=click.IntRange(1024, 65535), default=None, help="API port.")
@_common_options
def serve(
    host: str | None,
    port: int | None,
    seed: int | None,
    nodes: int | None,
    random_incidents: bool,
    log_level: str | None,
) -> None:
    """Run the simulation in real time and serve the REST API."""
    from kubesim.app import main

    config = _configure(seed, nodes, random_incidents, log_level)
    if host is not None:
        config.api = dataclasses.replace(config.api, host=host)
    if port is not None:
        config.api = dataclasses.replace(config.api, port=port)
    asyncio.run(main(config))

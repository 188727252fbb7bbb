"""Command-line interface for the Vlasov-Maxwell driver.

Usage:
    vmsim simulate config.json --output-dir=run1
    vmsim verify config.json
    vmsim init weibel weibel.json
"""

from __future__ import annotations

import logging
import sys

import click
from pydantic import ValidationError


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """vmsim: adaptive SSP-RK3 Vlasov-Maxwell simulator."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--output-dir", "-o", type=str, default=None, help="Override the output directory.")
@click.option("--t-end", type=float, default=None, help="Override the terminal time.")
@click.option("--restart", type=click.Path(exists=True), default=None, help="Restart from checkpoint.")
@click.option("--checkpoint-interval", type=int, default=0, help="Auto-checkpoint every N steps (0=off).")
def simulate(
    config_file: str,
    output_dir: str | None,
    t_end: float | None,
    restart: str | None,
    checkpoint_interval: int,
) -> None:
    """Run a simulation from a configuration file."""
    from vmsim.config import SimulationConfig
    from vmsim.engine import SimulationEngine
    from vmsim.errors import FieldContractError, SimulationError

    click.echo(f"Loading config from {config_file}")
    config = SimulationConfig.from_file(config_file)

    if t_end is not None:
        data = config.model_dump()
        data["time"]["t_end"] = t_end
        try:
            config = SimulationConfig(**data)
        except ValidationError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
            sys.exit(1)

    engine = SimulationEngine(config, output_dir=output_dir)
    click.echo(f"Output directory: {engine.output_dir}")

    if checkpoint_interval > 0:
        engine.checkpoint_interval = checkpoint_interval

    if restart:
        click.echo(f"Restarting from checkpoint: {restart}")
        try:
            engine.load_from_checkpoint(restart)
        except (FieldContractError, KeyError, OSError) as exc:
            click.echo(f"Cannot restart from {restart}: {exc}", err=True)
            sys.exit(1)

    try:
        summary = engine.run()
    except SimulationError as exc:
        click.echo(f"Simulation failed: {exc}", err=True)
        sys.exit(1)

    click.echo("\n--- Simulation Summary ---")
    for key, val in summary.items():
        if isinstance(val, float):
            click.echo(f"  {key}: {val:.6e}")
        else:
            click.echo(f"  {key}: {val}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def verify(config_file: str) -> None:
    """Verify a configuration file is valid."""
    from vmsim.config import SimulationConfig

    try:
        config = SimulationConfig.from_file(config_file)
    except (ValidationError, ValueError) as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    gc = config.grid
    click.echo("Configuration is valid:")
    click.echo(f"  Grid: [{gc.lower:g}, {gc.upper:g}] x {gc.cells} cells ({gc.boundary} BCs)")
    for sc in config.species:
        click.echo(
            f"  Species {sc.name}: q={sc.charge:g}, m={sc.mass:g}, "
            f"vt={sc.thermal_speed:.4g}, velocity cells={sc.velocity_cells}"
        )
    click.echo(f"  Maxwell: {config.maxwell.units} units, c={config.maxwell.light_speed:.4g}, "
               f"{config.maxwell.numerical_flux} flux")
    click.echo(f"  Time: [{config.time.t_start:g}, {config.time.t_end:g}], "
               f"{config.time.n_frames} frames")
    click.echo(f"  CFL: {config.cfl:.4g} (max {config.cflm:.4g})")
    click.echo(f"  Initial conditions: {config.initial.kind}")


@cli.command()
def presets() -> None:
    """List the built-in configuration presets."""
    from vmsim.presets import list_presets

    click.echo("Available presets:")
    for info in list_presets():
        species = ", ".join(info["species"])
        click.echo(f"  {info['name']:<14} {info['description']} [{info['cells']} cells; {species}]")


@cli.command()
@click.argument("preset")
@click.argument("output", type=click.Path())
def init(preset: str, output: str) -> None:
    """Write preset PRESET as a JSON configuration file OUTPUT."""
    from vmsim.config import SimulationConfig
    from vmsim.presets import get_preset

    try:
        data = get_preset(preset)
    except KeyError as exc:
        click.echo(str(exc.args[0]), err=True)
        sys.exit(1)
    SimulationConfig(**data).to_json(output)
    click.echo(f"Wrote preset '{preset}' to {output}")


if __name__ == "__main__":
    cli()

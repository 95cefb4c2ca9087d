"""``simulate`` command."""
from __future__ import annotations

import click

from virt.cli._common import handle_errors, info, print_json, print_table


@click.command(name="simulate")
@click.argument("file")
@click.option("--api", "-a", default=None, help="API base URL (default: API_URL or http://localhost:4000)")
@click.option("--dry-run", is_flag=True, default=False, help="Preview payload without sending it to the API")
def simulate_command(file: str, api: str | None, dry_run: bool) -> None:
    """Process a simulation YAML file and send it to the API."""
    from virt.api import ApiClient, load_simulation, run_simulation

    with handle_errors("processing the simulation"):
        simulation = load_simulation(file)
        if dry_run:
            info("Simulation preview")
            print_json(simulation)
            return
        with ApiClient(api) as client:
            response = run_simulation(client, simulation)
        info("Simulation successfully sent")
        if isinstance(response, dict):
            print_table(response)
        elif isinstance(response, list) and all(isinstance(row, dict) for row in response):
            print_table(response)
        elif response is not None:
            print_json(response)

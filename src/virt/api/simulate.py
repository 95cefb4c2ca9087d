"""Send simulation documents to the API."""
from __future__ import annotations

import os
from typing import Any

from virt.api.client import ApiClient
from virt.files import read_simulation_file

SIMULATION_PATH = "/simulation/run"


def load_simulation(path: str | os.PathLike[str]) -> dict[str, Any]:
    return read_simulation_file(path)


def run_simulation(api: ApiClient, simulation: dict[str, Any]) -> Any:
    """POST ``simulation`` to ``/simulation/run`` and return the API response."""
    return api.post(SIMULATION_PATH, simulation)

#!/usr/bin/env python3
"""Example: query the virtual APIs in-process (virt-toolkit)

Build the api-virtual application over ``examples/resources`` and call a
few of its routes with FastAPI's test client, no port needed.

Usage:
    python examples/02_mock_server.py

Requirements:
    pip install virt-toolkit
"""
from __future__ import annotations

import json
from pathlib import Path

from fastapi.testclient import TestClient

import virt
from virt.server.settings import ServerSettings

HERE = Path(__file__).parent


def main() -> None:
    settings = ServerSettings(resources_dir=HERE / "resources", assets_dir=None)
    with TestClient(virt.create_app(settings)) as client:
        catalog = client.get("/virtual/apis").json()
        for api in catalog["apis"]:
            print(f"{api['id']:<10} {api['basePath']:<14} {api['operations']} route(s)")

        account = client.get(
            "/wallet/accounts/acc-1",
            params={"currency": "USD"},
            headers={"x-request-id": "example-1"},
        )
        print(f"\nGET /wallet/accounts/acc-1 -> {account.status_code}")
        print(json.dumps(account.json(), indent=2))

        netwin = client.get("/reports/v1/netwin", params={"chain": "nova", "player_id": "7"})
        print(f"\nGET /reports/v1/netwin -> {netwin.status_code}")
        print(json.dumps(netwin.json()["filters"], indent=2))


if __name__ == "__main__":
    main()

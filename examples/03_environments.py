#!/usr/bin/env python3
"""Example: resolve environments (virt-toolkit)

Resolve the environments declared in ``examples/virt.config.yaml`` and
show how placeholders expand.

Usage:
    cd examples && python 03_environments.py

Requirements:
    pip install virt-toolkit
"""
from __future__ import annotations

import virt


def main() -> None:
    for name in ("local", "staging", "missing"):
        resolved = virt.resolve_environment(name)
        print(f"{name}: source={resolved.source}")
        if resolved.env is None:
            print("  (not declared)")
            continue
        env = resolved.env
        print(f"  apiUrl:     {env.api_url}")
        if env.postgres is not None:
            print(f"  postgres:   {env.postgres.mode} {env.postgres.host or env.postgres.service}")
        if env.opensearch is not None:
            print(f"  opensearch: {env.opensearch.url}")


if __name__ == "__main__":
    main()

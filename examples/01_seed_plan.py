#!/usr/bin/env python3
"""Example: compile a YAML seed (virt-toolkit)

Compile ``seeds/base.yaml`` into its ordered SQL plan without touching a
database. This is what ``shell-virtual postgres seed-yaml --dry-run``
prints.

Usage:
    python examples/01_seed_plan.py

Requirements:
    pip install virt-toolkit
"""
from __future__ import annotations

from pathlib import Path

import virt
from virt.postgres.seed import render_plan

HERE = Path(__file__).parent


def main() -> None:
    plan = virt.plan_seed(HERE / "seeds" / "base.yaml", default_db="api_party")

    for database in plan.databases:
        print(
            f"[{database.label}] {database.db} via target {database.target}: "
            f"{database.statement_count} statement(s)"
        )

    # Refs to other tables are rendered as scalar sub-selects
    print()
    print(render_plan(plan))


if __name__ == "__main__":
    main()

"""Unit tests for virt.postgres.seed.executor: ref resolution, plan
execution order and dry-run rendering.
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from virt.errors import SeedRefNotFoundError
from virt.postgres.seed import SeedExecutor, SeedRef, SeedStep, compile_seed, render_plan, render_step
from virt.postgres.seed.executor import parse_ref_output, resolve_ref, resolve_step

DOCUMENT = {
    "tables": {
        "Party": {"upsertBy": ["identifier"], "rows": [{"identifier": "acme", "name": "Acme"}]},
        "Account": {
            "rows": [{"partyId": {"ref": {"table": "Party", "where": {"identifier": "acme"}}}, "currency": "USD"}]
        },
    },
    "operations": [{"type": "delete", "table": "Session", "where": {"expired": True}}],
    "databases": {"audit": {}},
}


def _runner(query_result: str = "7\n") -> MagicMock:
    runner = MagicMock()
    runner.query.return_value = query_result
    return runner


class TestRefs:
    def test_integer_output_becomes_int(self) -> None:
        assert parse_ref_output(" 12 \n") == 12
        assert parse_ref_output("abc-1") == "abc-1"

    def test_resolve_ref_queries_with_limit(self) -> None:
        runner = _runner("9f1c\n")
        assert resolve_ref(runner, "app", SeedRef("Party", {"identifier": "acme"}, "uuid")) == "9f1c"
        runner.query.assert_called_once_with(
            "app", 'SELECT "uuid" FROM "Party" WHERE "identifier" = \'acme\' LIMIT 1;'
        )

    def test_missing_ref_raises(self) -> None:
        with pytest.raises(SeedRefNotFoundError) as info:
            resolve_ref(_runner("\n"), "app", SeedRef("Party", {"identifier": "x", "kind": "ORG"}))
        assert str(info.value) == "Seed ref not found: Party(\"identifier\" = 'x', \"kind\" = 'ORG')"

    def test_resolve_step_replaces_refs_everywhere(self) -> None:
        ref = SeedRef("Party", {"id": 1})
        step = SeedStep(kind="update", table="T", where={"p": ref}, set_values={"q": ref, "r": 2})
        resolved = resolve_step(_runner("5"), "app", step)
        assert resolved.where == {"p": 5}
        assert resolved.set_values == {"q": 5, "r": 2}


class TestSeedExecutor:
    def test_runs_statements_in_order_and_one_at_a_time(self) -> None:
        runner = _runner("7\n")
        messages: list[str] = []
        executed = SeedExecutor(lambda target: runner, echo=messages.append).run(compile_seed(DOCUMENT, "app"))

        assert executed == 3
        statements = [c.args[1] for c in runner.execute.call_args_list]
        assert statements == [
            'INSERT INTO "Party" ("identifier", "name") VALUES (\'acme\', \'Acme\') '
            'ON CONFLICT ("identifier") DO UPDATE SET "name" = EXCLUDED."name";',
            'INSERT INTO "Account" ("partyId", "currency") VALUES (7, \'USD\');',
            'DELETE FROM "Session" WHERE "expired" = TRUE;',
        ]
        assert {c.args[0] for c in runner.execute.call_args_list} == {"app"}
        assert messages[0] == "[default] Applying YAML seed to app..."
        assert "[default] YAML seed completed on app." in messages
        assert messages[-1] == "[audit] No tables/operations found for audit."

    def test_ref_resolved_after_previous_statement(self) -> None:
        runner = _runner()
        order: list[str] = []
        runner.execute.side_effect = lambda db, sql: order.append("execute")
        runner.query.side_effect = lambda db, sql: order.append("query") or "1"
        SeedExecutor(lambda target: runner, echo=lambda _: None).run(compile_seed(DOCUMENT, "app"))
        assert order[:3] == ["execute", "query", "execute"]

    def test_runner_factory_receives_target(self) -> None:
        factory = MagicMock(return_value=_runner())
        document = {"databases": {"wallet": {"db": "api_wallet", "target": "remote", "tables": {"T": {"rows": [{"a": 1}]}}}}}
        SeedExecutor(factory, echo=lambda _: None).run(compile_seed(document))
        factory.assert_called_once_with("remote")

    def test_failure_stops_execution(self) -> None:
        runner = _runner()
        runner.query.return_value = ""
        with pytest.raises(SeedRefNotFoundError):
            SeedExecutor(lambda target: runner, echo=lambda _: None).run(compile_seed(DOCUMENT, "app"))
        assert runner.execute.call_count == 1


class TestRenderPlan:
    def test_dry_run_renders_refs_as_subselects(self) -> None:
        text = render_plan(compile_seed(DOCUMENT, "app"))
        assert "-- [default] database: app (target: app)" in text
        assert "-- Seeding 1 row(s) into Account..." in text
        assert '(SELECT "id" FROM "Party" WHERE "identifier" = \'acme\' LIMIT 1)' in text
        assert "-- [audit] database: audit (target: audit)\n-- no tables/operations" in text

    def test_render_step_without_renderer_rejects_refs(self) -> None:
        from virt.errors import SeedError

        step = SeedStep(kind="insert", table="T", row={"a": SeedRef("P", {"id": 1})})
        with pytest.raises(SeedError, match="Unresolved seed ref"):
            render_step(step)

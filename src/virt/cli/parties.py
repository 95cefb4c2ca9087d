"""``parties`` command group, a thin client of the party-management API."""
from __future__ import annotations

from typing import TYPE_CHECKING

import click
from rich.tree import Tree

from virt.cli._common import console, handle_errors, info, print_json, print_table

if TYPE_CHECKING:
    from virt.api import ApiClient, PartyTreeNode

api_option = click.option("--api", "-a", default=None, help="API base URL (default: API_URL or http://localhost:4000)")


def _api(api: str | None) -> "ApiClient":
    from virt.api import ApiClient

    return ApiClient(api)


def render_party_tree(node: "PartyTreeNode") -> Tree:
    """Build a :class:`rich.tree.Tree` with one icon-prefixed label per party."""
    from virt.api.parties import party_label, type_icon

    def _label(tree_node: "PartyTreeNode") -> str:
        return f"{type_icon(tree_node.party.get('type'))} {party_label(tree_node.party)}"

    tree = Tree(_label(node), highlight=False)

    def _attach(branch: Tree, children: list["PartyTreeNode"]) -> None:
        for child in children:
            _attach(branch.add(_label(child)), child.children)

    _attach(tree, node.children)
    return tree


@click.group(name="parties")
def parties_group() -> None:
    """Manage parties via the API."""


# ---------------------------------------------------------------------------
# reset / load / bootstrap
# ---------------------------------------------------------------------------


@parties_group.command(name="reset")
@click.option("--remove-roots", is_flag=True, default=False, help="Also remove organizations without parent")
@api_option
def reset_command(remove_roots: bool, api: str | None) -> None:
    """Delete all parties, children before parents (roots kept by default)."""
    from virt.api import PartyService

    with handle_errors("resetting parties"):
        with _api(api) as client:
            PartyService(client, echo=info).reset(remove_roots)


def _load(file: str | None, project: str | None, parent: str, dry_run: bool, api: str | None) -> None:
    from virt.api import PartyService
    from virt.api.parties import resolve_party_file

    with handle_errors("loading parties"):
        path = resolve_party_file(file, project)
        with _api(api) as client:
            PartyService(client, echo=info).load(path, parent, dry_run=dry_run)


@parties_group.command(name="load")
@click.argument("file", required=False)
@click.option("--parent", "-p", required=True, help="Parent organization identifier (UUID or shortId)")
@click.option("--dry-run", is_flag=True, default=False, help="Preview the operations without sending them to the API")
@click.option("--project", "-P", default=None, help="Project name under PROJECTS_DIR to resolve default files")
@api_option
def load_command(file: str | None, parent: str, dry_run: bool, project: str | None, api: str | None) -> None:
    """Load parties from a YAML file and attach them under a parent organization."""
    _load(file, project, parent, dry_run, api)


@parties_group.command(name="bootstrap")
@click.argument("project")
@click.option("--parent", "-p", required=True, help="Parent organization identifier (UUID or shortId)")
@click.option("--dry-run", is_flag=True, default=False, help="Preview the operations without sending them to the API")
@api_option
def bootstrap_command(project: str, parent: str, dry_run: bool, api: str | None) -> None:
    """Load parties from <PROJECTS_DIR>/PROJECT/parties.yaml."""
    _load(None, project, parent, dry_run, api)


# ---------------------------------------------------------------------------
# show / tree / ancestors / list
# ---------------------------------------------------------------------------


@parties_group.command(name="show")
@click.argument("identifier")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output raw JSON instead of a formatted summary")
@api_option
def show_command(identifier: str, as_json: bool, api: str | None) -> None:
    """Show one party by UUID or shortId."""
    from virt.api.parties import party_label

    with handle_errors("fetching party"):
        with _api(api) as client:
            party = client.get(f"/parties/{identifier}")
        if as_json:
            print_json(party)
            return
        info(party_label(party))
        info(f"Type: {party.get('type')}")
        info(f"Alias: {party.get('alias') or '-'}")
        info(f"Parent: {party.get('orgId') or 'root'}")
        info(f"Currency: {party.get('currency') or '-'}")
        info(f"Balance: {party.get('balance')}")
        info(f"Status: {party.get('status')}")
        if party.get("metadata"):
            info("Metadata:")
            print_json(party["metadata"])
        if party.get("utm"):
            info("UTM:")
            print_json(party["utm"])


@parties_group.command(name="tree")
@click.argument("identifier", required=False)
@click.option("--depth", "-d", default="5", show_default=True, help="Max depth to traverse")
@api_option
def tree_command(identifier: str | None, depth: str, api: str | None) -> None:
    """Print the hierarchy under IDENTIFIER, or under every root organization."""
    from virt.api import PartyService
    from virt.api.parties import parse_positive_int

    with handle_errors("building party tree"):
        max_depth = parse_positive_int(depth, "Depth")
        with _api(api) as client:
            trees = PartyService(client, echo=info).trees(identifier, max_depth)
        if not trees:
            info("No root organizations found.")
            return
        for node in trees:
            console.print(render_party_tree(node))


@parties_group.command(name="ancestors")
@click.argument("identifier")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output raw JSON")
@api_option
def ancestors_command(identifier: str, as_json: bool, api: str | None) -> None:
    """List the ancestors of a party, nearest first."""
    from virt.api import PartyService
    from virt.api.parties import party_label

    with handle_errors("fetching ancestors"):
        with _api(api) as client:
            ancestors = PartyService(client).ancestors(identifier)
        if as_json:
            print_json(ancestors)
            return
        if not ancestors:
            info("No ancestors found (entity is probably a root organization).")
            return
        for position, ancestor in enumerate(ancestors, start=1):
            info(f"{position}. {party_label(ancestor)}")


@parties_group.command(name="list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output raw JSON")
@click.option(
    "--type",
    "types",
    multiple=True,
    help="Filter by party type (AFFILIATE | PLAYER | ORGANIZATION); repeatable",
)
@click.option("--status", default=None, help="Filter by party status")
@click.option("--page", default="1", show_default=True, help="Page number to retrieve")
@click.option("--page-size", default="25", show_default=True, help="Number of items per page (max 100)")
@api_option
def list_command(
    as_json: bool,
    types: tuple[str, ...],
    status: str | None,
    page: str,
    page_size: str,
    api: str | None,
) -> None:
    """List one page of parties."""
    from virt.api import PartyService, party_rows
    from virt.api.parties import parse_positive_int

    with handle_errors("listing parties"):
        page_number = parse_positive_int(page, "page")
        size = parse_positive_int(page_size, "pageSize")
        with _api(api) as client:
            data = PartyService(client).list_page(page_number, size, types, status)
        if as_json:
            print_json(data)
            return
        items = data.get("data") or []
        if not items:
            info("No parties found for the requested page.")
            return
        print_table(party_rows(items))
        total_pages = data.get("totalPages") or 1
        info(f"Page {data.get('currentPage')} of {total_pages}: {data.get('totalRecords')} total parties.")


# ---------------------------------------------------------------------------
# move
# ---------------------------------------------------------------------------


@parties_group.command(name="move")
@click.argument("identifier")
@click.argument("new_parent", metavar="NEW_PARENT")
@click.option("--mode", "-m", default=None, help="Move strategy: node | children | descendants")
@click.option("--depth", "-d", default=None, help="Depth selector (>=1) used with mode=descendants")
@api_option
def move_command(identifier: str, new_parent: str, mode: str | None, depth: str | None, api: str | None) -> None:
    """Move a party (and optionally its subtree) under NEW_PARENT."""
    from virt.api import PartyService

    with handle_errors("moving party"):
        with _api(api) as client:
            PartyService(client, echo=info).move(identifier, new_parent, mode, depth)

"""Link management commands for entity graph CLI.

Entities are addressed as ``Type:id``, for example ``Team:t1``.
"""

from cyclopts import App

link_app = App(name="link", help="Manage links between entities")


@link_app.command
def add(source: str, *targets: str) -> None:
    """Link a source entity to one or more target entities."""
    from entity_graph.cli import get_store
    from entity_graph.schema import parse_ref

    store = get_store()
    source_entity = parse_ref(store, source)
    for target in targets:
        store.link(source_entity, parse_ref(store, target))
    print(f"Added {len(targets)} link(s) from {source}")


@link_app.command
def remove(source: str, *targets: str) -> None:
    """Remove links between a source entity and target entities."""
    from entity_graph.cli import get_store
    from entity_graph.schema import parse_address

    store = get_store()
    # endpoints may already be deleted, so they are addressed without fetching
    source_ref = parse_address(source)
    removed = sum(store.unlink(source_ref, parse_address(target)) for target in targets)
    print(f"Removed {removed} link(s) from {source}")


@link_app.command(name="list")
def list_links(entity: str) -> None:
    """List all links of an entity, marking ones to deleted entities."""
    from entity_graph.cli import get_store
    from entity_graph.schema import parse_ref

    store = get_store()
    found = parse_ref(store, entity)
    links = store.list_links(found)

    if not links:
        print(f"No links found for {entity}")
        return

    print(f"Links for {entity}:\n")
    for link in links:
        other = link.other(found.ref())
        marker = "" if store.exists(other) else " (dangling)"
        print(f"  {link.source} <--> {link.target}{marker}")


@link_app.command
def prune() -> None:
    """Remove links whose endpoints no longer exist."""
    from entity_graph.cli import get_store

    count = get_store().prune_links()
    print(f"Pruned {count} dangling link(s)")

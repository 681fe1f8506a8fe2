"""CLI for entity graph."""

import sys
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from entity_graph.api import default_registry
from entity_graph.backend import StorageBackend
from entity_graph.backends import InMemoryBackend, SQLiteBackend
from entity_graph.config import get_config
from entity_graph.config_commands import config_app
from entity_graph.errors import EntityGraphError
from entity_graph.layout import desk_layout
from entity_graph.link_commands import link_app
from entity_graph.models import Entity
from entity_graph.person_commands import person_app
from entity_graph.store import EntityStore
from entity_graph.team_commands import team_app

logger = structlog.get_logger()

app = App(
    help="Entity Graph - typed entities and links over a pluggable store",
)

app.command(team_app)
app.command(person_app)
app.command(link_app)
app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_backend() -> StorageBackend:
    """Get the configured storage backend."""
    config = get_config()
    backend_type = config.get("backend")

    if backend_type == "sqlite":
        return SQLiteBackend(
            path=config.get("sqlite.path"),
            busy_timeout_ms=config.get_int("sqlite.busy_timeout_ms"),
        )
    elif backend_type == "memory":
        logger.warning("In-memory backend selected, nothing will persist between commands")
        return InMemoryBackend()
    else:
        raise ValueError(f"Unknown backend: {backend_type}")


def get_store() -> EntityStore:
    """Get a store over the configured backend."""
    config = get_config()
    return EntityStore(get_backend(), lock_stripes=config.get_int("store.lock_stripes"))


def format_entity(entity: Entity) -> str:
    values = ", ".join(f"{k}={getattr(v, 'value', v)}" for k, v in entity.fields().items())
    return f"{entity.type_name()} {entity.id}: {values}"


@app.command
def layout() -> None:
    """Print the desk order, first desk first."""
    store = get_store()
    seats = desk_layout(store)
    if not seats:
        print("No people to seat")
        return

    for desk, seat in enumerate(seats, 1):
        team = f" [{seat.team_id}]" if seat.team_id else ""
        print(f"{desk:3}. {seat.person.name} ({seat.person.dog_status.value}){team}")


@app.command
def call(operation: str, *params: str) -> None:
    """Call a registered operation with key=value parameters."""
    registry = default_registry()
    kwargs = {}
    for param in params:
        if "=" not in param:
            raise ValueError(f"Parameter must be key=value: {param}")
        key, value = param.split("=", 1)
        kwargs[key.strip()] = value.strip()

    result = registry.call(operation, get_store(), **kwargs)
    items = result if isinstance(result, list) else [result]
    for item in items:
        if isinstance(item, Entity):
            print(format_entity(item))
        else:
            print(item)


@app.command
def operations() -> None:
    """List the registered operations."""
    for operation in default_registry().operations():
        params = ", ".join(operation.param_names())
        print(f"{operation.kind.value:8} {operation.name}({params})")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except (EntityGraphError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    app.meta()

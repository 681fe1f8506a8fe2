"""Person commands for entity graph CLI."""

from typing import Literal

from cyclopts import App

person_app = App(name="person", help="Manage people")


@person_app.command(name="list")
def list_people() -> None:
    """List all people with their team."""
    from entity_graph.cli import get_store
    from entity_graph.schema import people, person_team

    store = get_store()
    found = people(store)
    print(f"Found {len(found)} person(s):\n")
    for person in found:
        team = person_team(store, person)
        team_str = f" [{team.name}]" if team else ""
        print(f"  {person.id}: {person.name} ({person.dog_status.value}){team_str}")


@person_app.command
def put(
    name: str,
    dog_status: Literal["LIKE", "HAVE", "AVOID"] = "LIKE",
    id: str | None = None,
    team: str | None = None,
) -> None:
    """Create a person, or update the person with the given id."""
    from entity_graph.cli import get_store
    from entity_graph.schema import put_person

    person = put_person(get_store(), name, dog_status=dog_status, person_id=id, team_id=team)
    print(f"Saved person {person.id}: {person.name}")


@person_app.command
def delete(id: str) -> None:
    """Delete a person."""
    from entity_graph.cli import get_store
    from entity_graph.schema import delete_person

    person = delete_person(get_store(), id)
    print(f"Deleted person {person.id}: {person.name}")

"""Team commands for entity graph CLI."""

from cyclopts import App

team_app = App(name="team", help="Manage teams and their members")


@team_app.command(name="list")
def list_teams() -> None:
    """List all teams."""
    from entity_graph.cli import get_store
    from entity_graph.schema import teams

    found = teams(get_store())
    print(f"Found {len(found)} team(s):\n")
    for team in found:
        print(f"  {team.id}: {team.name}")


@team_app.command
def put(name: str, id: str | None = None) -> None:
    """Create a team, or rename the team with the given id."""
    from entity_graph.cli import get_store
    from entity_graph.schema import put_team

    team = put_team(get_store(), name, team_id=id)
    print(f"Saved team {team.id}: {team.name}")


@team_app.command
def delete(id: str) -> None:
    """Delete a team and its memberships."""
    from entity_graph.cli import get_store
    from entity_graph.schema import delete_team

    team = delete_team(get_store(), id)
    print(f"Deleted team {team.id}: {team.name}")


@team_app.command
def members(id: str) -> None:
    """List the people in a team."""
    from entity_graph.cli import get_store
    from entity_graph.errors import EntityNotFoundError
    from entity_graph.schema import Team, team_members

    store = get_store()
    team = store.get(Team, id)
    if team is None:
        raise EntityNotFoundError(Team.type_name(), id)

    found = team_members(store, team)
    if not found:
        print(f"Team {team.name} has no members")
        return

    print(f"Members of {team.name}:\n")
    for person in found:
        print(f"  {person.id}: {person.name} ({person.dog_status.value})")


@team_app.command(name="add-member")
def add_member(team_id: str, *person_ids: str) -> None:
    """Move people into a team."""
    from entity_graph.cli import get_store
    from entity_graph import schema

    store = get_store()
    for person_id in person_ids:
        schema.add_member(store, team_id, person_id)
    print(f"Added {len(person_ids)} member(s) to {team_id}")


@team_app.command(name="remove-member")
def remove_member(team_id: str, *person_ids: str) -> None:
    """Take people out of a team."""
    from entity_graph.cli import get_store
    from entity_graph import schema

    store = get_store()
    removed = sum(schema.remove_member(store, team_id, person_id) for person_id in person_ids)
    print(f"Removed {removed} member(s) from {team_id}")

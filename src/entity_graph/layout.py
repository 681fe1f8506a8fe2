"""Desk layout for people sitting in a single line of adjacent desks.

Rules:
    - Members of a team sit together, and teams sit next to each other.
    - People who avoid dogs sit as far from dog owners as possible.
    - Dog owners are spread apart, with dog lovers seated between them.
"""

from typing import NamedTuple

from entity_graph.schema import DogStatus, Person, people, person_team
from entity_graph.store import EntityStore


class Seat(NamedTuple):
    """A person together with the team they belong to."""

    person: Person
    team_id: str | None = None


def _with_status(seats: list[Seat], status: DogStatus) -> list[Seat]:
    return [seat for seat in seats if seat.person.dog_status is status]


def order_team(likes: list[Seat], has: list[Seat], avoids: list[Seat]) -> list[Seat]:
    """Order one group: avoiders first, then owners spaced out by likers.

    Likers are split evenly between owners; the remainder goes one each into
    the first gaps, so every owner is preceded by as many likers as possible.
    """
    if not has:
        return [*avoids, *likes]

    per_owner, extra = divmod(len(likes), len(has))
    spare = likes[per_owner * len(has) :]
    ordered = list(avoids)
    for index, owner in enumerate(has):
        ordered.extend(likes[index * per_owner : (index + 1) * per_owner])
        if index < extra:
            ordered.append(spare.pop())
        ordered.append(owner)
    return ordered


def calculate_desk_layout(seats: list[Seat]) -> list[Seat]:
    """Return the seats in desk order, first desk first."""
    furthest_from_dogs: list[Seat] = []
    likes_individuals: list[Seat] = []
    has_individuals: list[Seat] = []
    team_map: dict[str, list[Seat]] = {}

    for seat in seats:
        if seat.team_id is None:
            if seat.person.dog_status is DogStatus.AVOID:
                furthest_from_dogs.append(seat)
            elif seat.person.dog_status is DogStatus.LIKE:
                likes_individuals.append(seat)
            else:
                has_individuals.append(seat)
        else:
            team_map.setdefault(seat.team_id, []).append(seat)

    # Teams with more likers end on a liker, teams with more owners start on an owner
    more_likes_teams: list[list[Seat]] = []
    fewer_likes_teams: list[list[Seat]] = []
    for members in team_map.values():
        likes = _with_status(members, DogStatus.LIKE)
        has = _with_status(members, DogStatus.HAVE)
        avoids = _with_status(members, DogStatus.AVOID)

        if len(avoids) == len(members):
            furthest_from_dogs.extend(members)
        elif not has:
            furthest_from_dogs.extend([*avoids, *likes])
        else:
            ordered = order_team(likes, has, avoids)
            if len(likes) > len(has):
                more_likes_teams.append(ordered)
            else:
                fewer_likes_teams.append(ordered)

    individuals = order_team(likes_individuals, has_individuals, [])
    paired = min(len(more_likes_teams), len(fewer_likes_teams))

    # Bookend each liker-heavy team with a reversed owner-heavy one so likers meet avoiders
    interleaved: list[Seat] = []
    for index in range(paired):
        interleaved.extend(more_likes_teams[index])
        if index == 0:
            interleaved.extend(individuals)
        interleaved.extend(reversed(fewer_likes_teams[index]))
    if not paired:
        interleaved.extend(individuals)

    remaining: list[Seat] = []
    for index, team in enumerate(more_likes_teams[paired:] + fewer_likes_teams[paired:]):
        if index % 2 != paired % 2:
            remaining.extend(reversed(team))
        else:
            remaining.extend(team)

    return [*furthest_from_dogs, *interleaved, *remaining]


def desk_layout(store: EntityStore) -> list[Seat]:
    """Lay out every person in the store."""
    seats = []
    for person in people(store):
        team = person_team(store, person)
        seats.append(Seat(person, team.id if team else None))
    return calculate_desk_layout(seats)

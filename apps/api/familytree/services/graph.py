"""
Relationship graph over the flat ``relationships`` edge table.

Edges are typed; ``parent_child`` edges point from parent (person1) to child
(person2) while ``spouse`` and ``sibling`` edges may be stored in either
direction. All derived views are read-only queries over the current session
state; the unique ``(relationship_type, pair_key)`` constraint is the
authoritative guard against duplicate edges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable

from sqlalchemy import and_, case, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased

from familytree.models.entities import Person, Relationship, RelationshipSubtypeEnum, RelationshipTypeEnum
from familytree.services.errors import DuplicateRelationship, InvalidRelationship, InvalidSubtype, NotFound

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    directed = "directed"
    undirected = "undirected"


ALLOWED_SUBTYPES: dict[RelationshipTypeEnum, frozenset[RelationshipSubtypeEnum]] = {
    RelationshipTypeEnum.parent_child: frozenset({RelationshipSubtypeEnum.mother, RelationshipSubtypeEnum.father}),
    RelationshipTypeEnum.spouse: frozenset(
        {
            RelationshipSubtypeEnum.husband,
            RelationshipSubtypeEnum.wife,
            RelationshipSubtypeEnum.ex_husband,
            RelationshipSubtypeEnum.ex_wife,
        }
    ),
    RelationshipTypeEnum.sibling: frozenset({RelationshipSubtypeEnum.brother, RelationshipSubtypeEnum.sister}),
}

DIRECTIONALITY: dict[RelationshipTypeEnum, Direction] = {
    RelationshipTypeEnum.parent_child: Direction.directed,
    RelationshipTypeEnum.spouse: Direction.undirected,
    RelationshipTypeEnum.sibling: Direction.undirected,
}

_SUBTYPE_MESSAGES = {
    RelationshipTypeEnum.parent_child: "parent_child relationships must be mother or father",
    RelationshipTypeEnum.spouse: "spouse relationships must be husband, wife, ex_husband, or ex_wife",
    RelationshipTypeEnum.sibling: "sibling relationships must be brother or sister",
}


@dataclass(frozen=True)
class EdgeRequest:
    person1_id: int
    person2_id: int
    relationship_type: RelationshipTypeEnum
    relationship_subtype: RelationshipSubtypeEnum
    marriage_date: date | None = None
    divorce_date: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "relationship_type", RelationshipTypeEnum(self.relationship_type))
        object.__setattr__(self, "relationship_subtype", RelationshipSubtypeEnum(self.relationship_subtype))


@dataclass
class BulkResult:
    created: list[Relationship] = field(default_factory=list)
    skipped: int = 0


def edge_key(person1_id: int, person2_id: int, relationship_type: RelationshipTypeEnum | str) -> str:
    if DIRECTIONALITY[RelationshipTypeEnum(relationship_type)] is Direction.undirected:
        person1_id, person2_id = sorted((person1_id, person2_id))
    return f"{person1_id}:{person2_id}"


def check_subtype(relationship_type: RelationshipTypeEnum | str, relationship_subtype: RelationshipSubtypeEnum | str) -> None:
    rel_type = RelationshipTypeEnum(relationship_type)
    if RelationshipSubtypeEnum(relationship_subtype) not in ALLOWED_SUBTYPES[rel_type]:
        raise InvalidSubtype(_SUBTYPE_MESSAGES[rel_type])


def missing_person_ids(db: Session, person_ids: Iterable[int]) -> set[int]:
    wanted = set(person_ids)
    if not wanted:
        return set()
    found = db.execute(select(Person.id).where(Person.id.in_(wanted))).scalars().all()
    return wanted - set(found)


def find_edge(
    db: Session,
    person1_id: int,
    person2_id: int,
    relationship_type: RelationshipTypeEnum | str,
) -> Relationship | None:
    rel_type = RelationshipTypeEnum(relationship_type)
    return db.execute(
        select(Relationship).where(
            Relationship.relationship_type == rel_type,
            Relationship.pair_key == edge_key(person1_id, person2_id, rel_type),
        )
    ).scalar_one_or_none()


def validate_edge(
    db: Session,
    person1_id: int,
    person2_id: int,
    relationship_type: RelationshipTypeEnum | str,
    relationship_subtype: RelationshipSubtypeEnum | str,
) -> None:
    """Raise if the edge could not be inserted; no side effects."""
    if person1_id == person2_id:
        raise InvalidRelationship("a person cannot be related to themselves")
    if missing_person_ids(db, (person1_id, person2_id)):
        raise NotFound("one or both persons not found")
    check_subtype(relationship_type, relationship_subtype)
    if find_edge(db, person1_id, person2_id, relationship_type) is not None:
        raise DuplicateRelationship("this relationship already exists")


def _insert_edge(db: Session, request: EdgeRequest) -> Relationship:
    key = edge_key(request.person1_id, request.person2_id, request.relationship_type)
    edge = Relationship(
        person1_id=request.person1_id,
        person2_id=request.person2_id,
        relationship_type=request.relationship_type,
        relationship_subtype=request.relationship_subtype,
        pair_key=key,
        marriage_date=request.marriage_date,
        divorce_date=request.divorce_date,
        is_active=True,
    )
    # A failed insert only unwinds its own savepoint; earlier work in the session survives.
    try:
        with db.begin_nested():
            db.add(edge)
    except IntegrityError:
        if missing_person_ids(db, (request.person1_id, request.person2_id)):
            raise NotFound("one or both persons not found") from None
        logger.info("duplicate edge rejected by storage: %s %s", request.relationship_type.value, key)
        raise DuplicateRelationship("this relationship already exists") from None
    return edge


def create_edge(db: Session, request: EdgeRequest) -> Relationship:
    validate_edge(
        db,
        request.person1_id,
        request.person2_id,
        request.relationship_type,
        request.relationship_subtype,
    )
    edge = _insert_edge(db, request)
    logger.info(
        "created %s edge %s -> %s (%s)",
        request.relationship_type.value,
        request.person1_id,
        request.person2_id,
        request.relationship_subtype.value,
    )
    return edge


_EDITABLE_EDGE_FIELDS = frozenset({"relationship_subtype", "marriage_date", "divorce_date", "is_active"})
_NON_NULLABLE_EDGE_FIELDS = ("relationship_subtype", "is_active")


def update_edge(db: Session, edge: Relationship, **changes) -> Relationship:
    """
    Apply the fields present in ``changes``; dates may be set to None to clear them.

    Type and endpoints are immutable. None for a non-nullable field means unchanged.
    """
    unknown = set(changes) - _EDITABLE_EDGE_FIELDS
    if unknown:
        raise InvalidRelationship(f"cannot change {', '.join(sorted(unknown))}")
    for name in _NON_NULLABLE_EDGE_FIELDS:
        if name in changes and changes[name] is None:
            del changes[name]
    if "relationship_subtype" in changes:
        check_subtype(edge.relationship_type, changes["relationship_subtype"])
        changes["relationship_subtype"] = RelationshipSubtypeEnum(changes["relationship_subtype"])
    for name, value in changes.items():
        setattr(edge, name, value)
    db.flush()
    return edge


def delete_edge(db: Session, edge: Relationship) -> None:
    db.delete(edge)
    db.flush()


def detach_person(db: Session, person_id: int) -> int:
    """Delete every edge touching the person; returns how many were removed."""
    edges = db.execute(
        select(Relationship).where(or_(Relationship.person1_id == person_id, Relationship.person2_id == person_id))
    ).scalars().all()
    for edge in edges:
        db.delete(edge)
    db.flush()
    return len(edges)


def create_bulk_edges(db: Session, requests: list[EdgeRequest]) -> BulkResult:
    """
    Insert several edges in order.

    Person existence and subtype validity are checked for the whole batch
    before anything is written; either failure rejects the batch. Edges that
    already exist, including ones inserted earlier in the same batch, are
    skipped and counted rather than reported as errors, whether the lookup
    or the storage constraint catches them.
    """
    referenced = {pid for req in requests for pid in (req.person1_id, req.person2_id)}
    missing = missing_person_ids(db, referenced)
    if missing:
        raise NotFound(f"persons not found: {', '.join(str(pid) for pid in sorted(missing))}")
    for req in requests:
        if req.person1_id == req.person2_id:
            raise InvalidRelationship("a person cannot be related to themselves")
        check_subtype(req.relationship_type, req.relationship_subtype)

    result = BulkResult()
    for req in requests:
        if find_edge(db, req.person1_id, req.person2_id, req.relationship_type) is not None:
            result.skipped += 1
            continue
        try:
            result.created.append(_insert_edge(db, req))
        except DuplicateRelationship:
            # Lost a race with a concurrent writer after the lookup.
            result.skipped += 1
    logger.info("bulk edge insert: %d created, %d skipped", len(result.created), result.skipped)
    return result


def derive_parents(db: Session, person_id: int) -> list[Person]:
    father_first = case((Relationship.relationship_subtype == RelationshipSubtypeEnum.father, 0), else_=1)
    return list(
        db.execute(
            select(Person)
            .join(Relationship, Relationship.person1_id == Person.id)
            .where(
                Relationship.person2_id == person_id,
                Relationship.relationship_type == RelationshipTypeEnum.parent_child,
            )
            .order_by(father_first, Person.first_name)
        ).scalars().all()
    )


def derive_children(db: Session, person_id: int) -> list[Person]:
    return list(
        db.execute(
            select(Person)
            .join(Relationship, Relationship.person2_id == Person.id)
            .where(
                Relationship.person1_id == person_id,
                Relationship.relationship_type == RelationshipTypeEnum.parent_child,
            )
            .order_by(Person.birth_date.is_(None), Person.birth_date, Person.first_name)
        ).scalars().all()
    )


def _linked_condition(person_id: int, relationship_type: RelationshipTypeEnum):
    """Join condition from Person to an edge of ``relationship_type`` touching ``person_id``."""
    outgoing = and_(Relationship.person1_id == person_id, Relationship.person2_id == Person.id)
    if DIRECTIONALITY[relationship_type] is Direction.directed:
        return outgoing
    incoming = and_(Relationship.person2_id == person_id, Relationship.person1_id == Person.id)
    return or_(outgoing, incoming)


def spouse_links(db: Session, person_id: int) -> list[tuple[Person, Relationship]]:
    """Spouses with the edge linking them, ex-spouses included."""
    rows = db.execute(
        select(Person, Relationship)
        .join(Relationship, _linked_condition(person_id, RelationshipTypeEnum.spouse))
        .where(
            Relationship.relationship_type == RelationshipTypeEnum.spouse,
            Person.id != person_id,
        )
        .order_by(Relationship.marriage_date.is_(None), Relationship.marriage_date, Person.first_name)
    ).all()
    return [(person, edge) for person, edge in rows]


def derive_spouses(db: Session, person_id: int) -> list[Person]:
    return [person for person, _ in spouse_links(db, person_id)]


def derive_siblings(db: Session, person_id: int) -> list[Person]:
    # Any shared parent counts, so half-siblings are listed like full siblings.
    own_parents = select(Relationship.person1_id).where(
        Relationship.person2_id == person_id,
        Relationship.relationship_type == RelationshipTypeEnum.parent_child,
    )
    parent_edge = aliased(Relationship)
    children_of_parents = select(parent_edge.person2_id).where(
        parent_edge.relationship_type == RelationshipTypeEnum.parent_child,
        parent_edge.person1_id.in_(own_parents),
    )
    return list(
        db.execute(
            select(Person)
            .where(Person.id.in_(children_of_parents), Person.id != person_id)
            .order_by(Person.birth_date.is_(None), Person.birth_date, Person.first_name)
        ).scalars().all()
    )


def person_edges(db: Session, person_id: int) -> list[Relationship]:
    return list(
        db.execute(
            select(Relationship)
            .where(or_(Relationship.person1_id == person_id, Relationship.person2_id == person_id))
            .order_by(Relationship.relationship_type, Relationship.created_at, Relationship.id)
        ).scalars().all()
    )


def family_edges(db: Session, family_id: int) -> list[Relationship]:
    person1 = aliased(Person)
    person2 = aliased(Person)
    return list(
        db.execute(
            select(Relationship)
            .join(person1, person1.id == Relationship.person1_id)
            .join(person2, person2.id == Relationship.person2_id)
            .where(person1.family_id == family_id, person2.family_id == family_id)
            .order_by(Relationship.relationship_type, Relationship.created_at, Relationship.id)
        ).scalars().all()
    )

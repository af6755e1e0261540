from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, aliased

from familytree.core.auth import AuthContext, require_auth
from familytree.core.db import get_db
from familytree.models.entities import Person, Relationship, RelationshipTypeEnum
from familytree.schemas.relationships import (
    RelationshipBulkCreate,
    RelationshipBulkResponse,
    RelationshipCreate,
    RelationshipListResponse,
    RelationshipResponse,
    RelationshipUpdate,
)
from familytree.services import graph
from familytree.services.access import PermissionResolver, get_permission_resolver, viewable_family_ids
from familytree.services.errors import Forbidden, NotFound

router = APIRouter(prefix="/v1/relationships", tags=["relationships"])


def to_relationship_responses(db: Session, edges: list[Relationship]) -> list[RelationshipResponse]:
    person_ids = {pid for edge in edges for pid in (edge.person1_id, edge.person2_id)}
    persons = {}
    if person_ids:
        persons = {p.id: p for p in db.execute(select(Person).where(Person.id.in_(person_ids))).scalars().all()}
    responses = []
    for edge in edges:
        person1 = persons.get(edge.person1_id)
        person2 = persons.get(edge.person2_id)
        responses.append(
            RelationshipResponse(
                id=edge.id,
                person1_id=edge.person1_id,
                person2_id=edge.person2_id,
                person1_name=person1.display_name if person1 else None,
                person2_name=person2.display_name if person2 else None,
                relationship_type=edge.relationship_type.value,
                relationship_subtype=edge.relationship_subtype.value,
                marriage_date=edge.marriage_date,
                divorce_date=edge.divorce_date,
                is_active=edge.is_active,
                created_at=edge.created_at,
            )
        )
    return responses


def _ensure_relationship_exists(db: Session, relationship_id: int) -> Relationship:
    edge = db.get(Relationship, relationship_id)
    if edge is None:
        raise NotFound("relationship not found")
    return edge


def _endpoint_persons(db: Session, *person_ids: int) -> list[Person]:
    return list(db.execute(select(Person).where(Person.id.in_(set(person_ids)))).scalars().all())


def _require_edit_on_persons(resolver: PermissionResolver, ctx: AuthContext, persons: list[Person]) -> None:
    for person in persons:
        resolver.require_person_edit(ctx, person)


@router.get("", response_model=RelationshipListResponse)
def list_relationships(
    person_id: int | None = Query(default=None),
    family_id: int | None = Query(default=None),
    type: RelationshipTypeEnum | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    person1 = aliased(Person)
    person2 = aliased(Person)
    query = (
        select(Relationship)
        .join(person1, person1.id == Relationship.person1_id)
        .join(person2, person2.id == Relationship.person2_id)
    )
    if not ctx.is_admin:
        visible = viewable_family_ids(ctx)
        query = query.where(
            or_(person1.family_id.is_(None), person1.family_id.in_(visible)),
            or_(person2.family_id.is_(None), person2.family_id.in_(visible)),
        )
    if person_id is not None:
        query = query.where(or_(Relationship.person1_id == person_id, Relationship.person2_id == person_id))
    if family_id is not None:
        query = query.where(person1.family_id == family_id, person2.family_id == family_id)
    if type is not None:
        query = query.where(Relationship.relationship_type == type)
    edges = db.execute(
        query.order_by(Relationship.relationship_type, Relationship.created_at, Relationship.id)
    ).scalars().all()
    return RelationshipListResponse(items=to_relationship_responses(db, list(edges)))


@router.get("/{relationship_id}", response_model=RelationshipResponse)
def get_relationship(
    relationship_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    edge = _ensure_relationship_exists(db, relationship_id)
    if not ctx.is_admin:
        for person in _endpoint_persons(db, edge.person1_id, edge.person2_id):
            if person.family_id is not None and not resolver.can_view_family(ctx, person.family_id):
                raise Forbidden("access denied to this relationship")
    return to_relationship_responses(db, [edge])[0]


@router.post("", response_model=RelationshipResponse, status_code=201)
def create_relationship(
    payload: RelationshipCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    persons = _endpoint_persons(db, payload.person1_id, payload.person2_id)
    _require_edit_on_persons(resolver, ctx, persons)
    edge = graph.create_edge(db, graph.EdgeRequest(**payload.model_dump()))
    db.commit()
    db.refresh(edge)
    return to_relationship_responses(db, [edge])[0]


@router.post("/bulk", response_model=RelationshipBulkResponse, status_code=201)
def create_relationships_bulk(
    payload: RelationshipBulkCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    requests = [graph.EdgeRequest(**item.model_dump()) for item in payload.relationships]
    person_ids = {pid for req in requests for pid in (req.person1_id, req.person2_id)}
    persons = _endpoint_persons(db, *person_ids)
    if len(persons) != len(person_ids):
        raise NotFound("one or more persons not found")
    _require_edit_on_persons(resolver, ctx, persons)

    result = graph.create_bulk_edges(db, requests)
    db.commit()
    for edge in result.created:
        db.refresh(edge)
    return RelationshipBulkResponse(
        items=to_relationship_responses(db, result.created),
        created=len(result.created),
        skipped=result.skipped,
    )


@router.put("/{relationship_id}", response_model=RelationshipResponse)
def update_relationship(
    relationship_id: int,
    payload: RelationshipUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    edge = _ensure_relationship_exists(db, relationship_id)
    _require_edit_on_persons(resolver, ctx, _endpoint_persons(db, edge.person1_id, edge.person2_id))

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    graph.update_edge(db, edge, **changes)
    db.commit()
    db.refresh(edge)
    return to_relationship_responses(db, [edge])[0]


@router.delete("/{relationship_id}", status_code=204)
def delete_relationship(
    relationship_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    edge = _ensure_relationship_exists(db, relationship_id)
    _require_edit_on_persons(resolver, ctx, _endpoint_persons(db, edge.person1_id, edge.person2_id))
    graph.delete_edge(db, edge)
    db.commit()

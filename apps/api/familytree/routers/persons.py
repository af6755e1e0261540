from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from familytree.core.auth import AuthContext, require_auth
from familytree.core.db import get_db
from familytree.models.entities import GenderEnum, PermissionLevelEnum, Person
from familytree.routers.relationships import to_relationship_responses
from familytree.schemas.persons import (
    PersonCreate,
    PersonDetailResponse,
    PersonListResponse,
    PersonResponse,
    PersonTreeResponse,
    PersonUpdate,
    SpouseResponse,
)
from familytree.services import graph
from familytree.services.access import PermissionResolver, get_permission_resolver, require_family, viewable_family_ids
from familytree.services.errors import NotFound

router = APIRouter(prefix="/v1/persons", tags=["persons"])

_REQUIRED_PERSON_FIELDS = {"first_name", "last_name", "gender", "is_deceased"}


def _to_person_response(person: Person) -> PersonResponse:
    return PersonResponse(
        id=person.id,
        first_name=person.first_name,
        last_name=person.last_name,
        maiden_name=person.maiden_name,
        gender=person.gender.value,
        birth_date=person.birth_date,
        death_date=person.death_date,
        birth_place=person.birth_place,
        death_place=person.death_place,
        photo_url=person.photo_url,
        biography=person.biography,
        is_deceased=person.is_deceased,
        family_id=person.family_id,
        created_by=person.created_by,
        created_at=person.created_at,
    )


def _ensure_person_exists(db: Session, person_id: int) -> Person:
    person = db.get(Person, person_id)
    if person is None:
        raise NotFound("person not found")
    return person


@router.get("", response_model=PersonListResponse)
def list_persons(
    family_id: int | None = Query(default=None),
    gender: GenderEnum | None = Query(default=None),
    is_deceased: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
):
    query = select(Person)
    if not ctx.is_admin:
        query = query.where(or_(Person.family_id.is_(None), Person.family_id.in_(viewable_family_ids(ctx))))
    if family_id is not None:
        query = query.where(Person.family_id == family_id)
    if gender is not None:
        query = query.where(Person.gender == gender)
    if is_deceased is not None:
        query = query.where(Person.is_deceased.is_(is_deceased))
    if search:
        term = f"%{search}%"
        query = query.where(
            or_(Person.first_name.ilike(term), Person.last_name.ilike(term), Person.maiden_name.ilike(term))
        )
    persons = db.execute(query.order_by(Person.last_name, Person.first_name, Person.id)).scalars().all()
    return PersonListResponse(items=[_to_person_response(person) for person in persons])


@router.get("/{person_id}", response_model=PersonDetailResponse)
def get_person(
    person_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    person = _ensure_person_exists(db, person_id)
    resolver.require_person_view(ctx, person)

    spouses = [
        SpouseResponse(
            **_to_person_response(spouse).model_dump(),
            relationship_subtype=edge.relationship_subtype.value,
            marriage_date=edge.marriage_date,
            divorce_date=edge.divorce_date,
        )
        for spouse, edge in graph.spouse_links(db, person_id)
    ]
    return PersonDetailResponse(
        **_to_person_response(person).model_dump(),
        relationships=to_relationship_responses(db, graph.person_edges(db, person_id)),
        parents=[_to_person_response(p) for p in graph.derive_parents(db, person_id)],
        children=[_to_person_response(p) for p in graph.derive_children(db, person_id)],
        spouses=spouses,
        siblings=[_to_person_response(p) for p in graph.derive_siblings(db, person_id)],
    )


@router.post("", response_model=PersonResponse, status_code=201)
def create_person(
    payload: PersonCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    if payload.family_id is not None:
        require_family(db, payload.family_id)
        resolver.require_family_permission(
            ctx, payload.family_id, PermissionLevelEnum.edit, "edit access required to add persons to this family"
        )

    person = Person(**payload.model_dump(), created_by=ctx.user_id)
    db.add(person)
    db.commit()
    db.refresh(person)
    return _to_person_response(person)


@router.put("/{person_id}", response_model=PersonResponse)
def update_person(
    person_id: int,
    payload: PersonUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    person = _ensure_person_exists(db, person_id)
    resolver.require_person_edit(ctx, person)

    # Explicit nulls clear optional fields; on required fields they mean unchanged.
    changes = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in _REQUIRED_PERSON_FIELDS
    }
    if not changes:
        raise HTTPException(status_code=400, detail="no fields to update")
    new_family_id = changes.get("family_id")
    if new_family_id is not None and new_family_id != person.family_id:
        # Moving a person needs edit access on the destination family as well.
        require_family(db, new_family_id)
        resolver.require_family_permission(
            ctx, new_family_id, PermissionLevelEnum.edit, "edit access required to the destination family"
        )
    for key, value in changes.items():
        setattr(person, key, value)
    db.commit()
    db.refresh(person)
    return _to_person_response(person)


@router.delete("/{person_id}", status_code=204)
def delete_person(
    person_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    person = _ensure_person_exists(db, person_id)
    resolver.require_person_edit(ctx, person, PermissionLevelEnum.admin)
    graph.detach_person(db, person_id)
    db.delete(person)
    db.commit()


@router.get("/{person_id}/tree", response_model=PersonTreeResponse)
def get_person_tree(
    person_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_auth),
    resolver: PermissionResolver = Depends(get_permission_resolver),
):
    person = _ensure_person_exists(db, person_id)
    resolver.require_person_view(ctx, person)

    if person.family_id is None:
        members, edges = [person], []
    else:
        members = list(
            db.execute(
                select(Person)
                .where(Person.family_id == person.family_id)
                .order_by(Person.birth_date.is_(None), Person.birth_date, Person.first_name)
            ).scalars().all()
        )
        edges = graph.family_edges(db, person.family_id)
    return PersonTreeResponse(
        root_person=_to_person_response(person),
        family_members=[_to_person_response(member) for member in members],
        relationships=to_relationship_responses(db, edges),
    )

from datetime import date

from familytree.models.entities import (
    Family,
    GenderEnum,
    PermissionLevelEnum,
    Person,
    RoleEnum,
    User,
    UserFamilyPermission,
)


def auth_headers(email: str) -> dict[str, str]:
    return {"X-Forwarded-User": email}


def make_user(db, email: str, role: RoleEnum = RoleEnum.family_member, **fields) -> User:
    user = User(email=email, role=role, first_name=fields.get("first_name", ""), last_name=fields.get("last_name", ""))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_family(db, name: str, is_public: bool = False) -> Family:
    family = Family(name=name, is_public=is_public)
    db.add(family)
    db.commit()
    db.refresh(family)
    return family


def grant(db, user: User, family: Family, level: PermissionLevelEnum) -> UserFamilyPermission:
    row = UserFamilyPermission(user_id=user.id, family_id=family.id, permission_level=level)
    db.add(row)
    db.commit()
    return row


def make_person(
    db,
    first_name: str,
    last_name: str = "Zhupani",
    gender: GenderEnum = GenderEnum.male,
    birth_date: date | None = None,
    family: Family | None = None,
) -> Person:
    person = Person(
        first_name=first_name,
        last_name=last_name,
        gender=gender,
        birth_date=birth_date,
        family_id=family.id if family is not None else None,
    )
    db.add(person)
    db.commit()
    db.refresh(person)
    return person

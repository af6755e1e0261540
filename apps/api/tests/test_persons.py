from factories import auth_headers

EDITOR = auth_headers("editor@example.com")
OUTSIDER = auth_headers("outsider@example.com")


def _person(client, first_name, gender, family_id=None, headers=EDITOR, **extra):
    response = client.post(
        "/v1/persons",
        json={"first_name": first_name, "last_name": "Berisha", "gender": gender, "family_id": family_id, **extra},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def _link(client, p1, p2, rel_type, subtype, **extra):
    response = client.post(
        "/v1/relationships",
        json={
            "person1_id": p1,
            "person2_id": p2,
            "relationship_type": rel_type,
            "relationship_subtype": subtype,
            **extra,
        },
        headers=EDITOR,
    )
    assert response.status_code == 201


def test_person_crud(client):
    family_id = client.post("/v1/families", json={"name": "Berisha"}, headers=EDITOR).json()["id"]
    person_id = _person(client, "Luan", "male", family_id, birth_place="Prizren")

    fetched = client.get(f"/v1/persons/{person_id}", headers=EDITOR)
    assert fetched.status_code == 200
    assert fetched.json()["birth_place"] == "Prizren"
    assert fetched.json()["parents"] == []

    update = client.put(f"/v1/persons/{person_id}", json={"is_deceased": True, "death_date": "2001-04-02"}, headers=EDITOR)
    assert update.status_code == 200
    assert update.json()["is_deceased"] is True

    empty_update = client.put(f"/v1/persons/{person_id}", json={}, headers=EDITOR)
    assert empty_update.status_code == 400

    searched = client.get("/v1/persons", params={"search": "lua"}, headers=EDITOR)
    assert [item["id"] for item in searched.json()["items"]] == [person_id]

    assert client.delete(f"/v1/persons/{person_id}", headers=EDITOR).status_code == 204
    assert client.get(f"/v1/persons/{person_id}", headers=EDITOR).status_code == 404


def test_person_detail_derives_family_views(client):
    family_id = client.post("/v1/families", json={"name": "Berisha"}, headers=EDITOR).json()["id"]
    father = _person(client, "Adem", "male", family_id, birth_date="1940-01-01")
    mother = _person(client, "Shqipe", "female", family_id, birth_date="1945-01-01")
    elder = _person(client, "Valon", "male", family_id, birth_date="1970-01-01")
    younger = _person(client, "Mimoza", "female", family_id, birth_date="1972-01-01")
    wife = _person(client, "Teuta", "female", family_id)

    for child in (elder, younger):
        _link(client, father, child, "parent_child", "father")
        _link(client, mother, child, "parent_child", "mother")
    _link(client, wife, elder, "spouse", "wife", marriage_date="1995-07-01")

    detail = client.get(f"/v1/persons/{elder}", headers=EDITOR).json()
    assert [p["id"] for p in detail["parents"]] == [father, mother]
    assert [p["id"] for p in detail["siblings"]] == [younger]
    assert detail["children"] == []
    assert [(s["id"], s["relationship_subtype"]) for s in detail["spouses"]] == [(wife, "wife")]
    assert len(detail["relationships"]) == 3

    father_detail = client.get(f"/v1/persons/{father}", headers=EDITOR).json()
    assert [p["id"] for p in father_detail["children"]] == [elder, younger]

    tree = client.get(f"/v1/persons/{younger}/tree", headers=EDITOR).json()
    assert tree["root_person"]["id"] == younger
    assert len(tree["family_members"]) == 5
    assert len(tree["relationships"]) == 5


def test_deleting_person_removes_their_relationships(client):
    family_id = client.post("/v1/families", json={"name": "Berisha"}, headers=EDITOR).json()["id"]
    parent = _person(client, "Nora", "female", family_id)
    child = _person(client, "Olsi", "male", family_id)
    _link(client, parent, child, "parent_child", "mother")

    assert client.delete(f"/v1/persons/{parent}", headers=EDITOR).status_code == 204
    assert client.get(f"/v1/persons/{child}", headers=EDITOR).json()["parents"] == []
    assert client.get("/v1/relationships", headers=EDITOR).json()["items"] == []


def test_private_family_persons_are_hidden(client):
    family_id = client.post("/v1/families", json={"name": "Berisha"}, headers=EDITOR).json()["id"]
    person_id = _person(client, "Petrit", "male", family_id)

    assert client.get(f"/v1/persons/{person_id}", headers=OUTSIDER).status_code == 403
    assert client.get("/v1/persons", headers=OUTSIDER).json()["items"] == []
    assert client.put(f"/v1/persons/{person_id}", json={"first_name": "X"}, headers=OUTSIDER).status_code == 403


def test_adding_person_needs_edit_grant(client):
    family_id = client.post("/v1/families", json={"name": "Open Berisha", "is_public": True}, headers=EDITOR).json()["id"]
    response = client.post(
        "/v1/persons",
        json={"first_name": "Rina", "last_name": "Berisha", "gender": "female", "family_id": family_id},
        headers=OUTSIDER,
    )
    assert response.status_code == 403
    missing_family = client.post(
        "/v1/persons",
        json={"first_name": "Rina", "last_name": "Berisha", "gender": "female", "family_id": family_id + 10},
        headers=EDITOR,
    )
    assert missing_family.status_code == 404


def test_unaffiliated_person_is_readable_but_admin_edited(client, admin_headers):
    person_id = _person(client, "Sokol", "male")

    assert client.get(f"/v1/persons/{person_id}", headers=OUTSIDER).status_code == 200
    assert client.put(f"/v1/persons/{person_id}", json={"first_name": "Sokoli"}, headers=EDITOR).status_code == 403
    assert client.put(f"/v1/persons/{person_id}", json={"first_name": "Sokoli"}, headers=admin_headers).status_code == 200


def test_update_can_detach_person_from_family(client, admin_headers):
    family_id = client.post("/v1/families", json={"name": "Berisha"}, headers=EDITOR).json()["id"]
    person_id = _person(client, "Qendresa", "female", family_id, birth_place="Gjakova")

    update = client.put(f"/v1/persons/{person_id}", json={"family_id": None, "birth_place": None}, headers=EDITOR)
    assert update.status_code == 200
    assert update.json()["family_id"] is None
    assert update.json()["birth_place"] is None
    assert update.json()["first_name"] == "Qendresa"

    # A null on a required field is no change at all.
    unchanged = client.put(f"/v1/persons/{person_id}", json={"first_name": None}, headers=admin_headers)
    assert unchanged.status_code == 400
    assert client.get(f"/v1/persons/{person_id}", headers=admin_headers).json()["first_name"] == "Qendresa"

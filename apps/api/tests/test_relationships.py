from factories import auth_headers

EDITOR = auth_headers("editor@example.com")
OUTSIDER = auth_headers("outsider@example.com")


def _family_with_persons(client, *names):
    family_id = client.post("/v1/families", json={"name": "Krasniqi"}, headers=EDITOR).json()["id"]
    ids = []
    for first_name, gender in names:
        response = client.post(
            "/v1/persons",
            json={"first_name": first_name, "last_name": "Krasniqi", "gender": gender, "family_id": family_id},
            headers=EDITOR,
        )
        assert response.status_code == 201
        ids.append(response.json()["id"])
    return family_id, ids


def _edge(p1, p2, rel_type, subtype, **extra):
    return {"person1_id": p1, "person2_id": p2, "relationship_type": rel_type, "relationship_subtype": subtype, **extra}


def test_relationship_crud(client):
    family_id, (father, daughter) = _family_with_persons(client, ("Driton", "male"), ("Era", "female"))

    created = client.post("/v1/relationships", json=_edge(father, daughter, "parent_child", "father"), headers=EDITOR)
    assert created.status_code == 201
    body = created.json()
    assert body["person1_name"] == "Driton Krasniqi"
    assert body["person2_name"] == "Era Krasniqi"
    assert body["is_active"] is True
    rel_id = body["id"]

    duplicate = client.post("/v1/relationships", json=_edge(father, daughter, "parent_child", "father"), headers=EDITOR)
    assert duplicate.status_code == 409

    listed = client.get("/v1/relationships", params={"person_id": daughter}, headers=EDITOR)
    assert [item["id"] for item in listed.json()["items"]] == [rel_id]

    update = client.put(f"/v1/relationships/{rel_id}", json={"relationship_subtype": "mother"}, headers=EDITOR)
    assert update.status_code == 200
    assert update.json()["relationship_subtype"] == "mother"

    bad_update = client.put(f"/v1/relationships/{rel_id}", json={"relationship_subtype": "wife"}, headers=EDITOR)
    assert bad_update.status_code == 400

    assert client.delete(f"/v1/relationships/{rel_id}", headers=EDITOR).status_code == 204
    assert client.get(f"/v1/relationships/{rel_id}", headers=EDITOR).status_code == 404
    assert client.get("/v1/relationships", params={"family_id": family_id}, headers=EDITOR).json()["items"] == []


def test_create_relationship_error_mapping(client):
    _, (a, b) = _family_with_persons(client, ("Arta", "female"), ("Blerim", "male"))

    wrong_subtype = client.post("/v1/relationships", json=_edge(a, b, "parent_child", "brother"), headers=EDITOR)
    assert wrong_subtype.status_code == 400
    assert wrong_subtype.json()["detail"] == "parent_child relationships must be mother or father"

    self_edge = client.post("/v1/relationships", json=_edge(a, a, "sibling", "sister"), headers=EDITOR)
    assert self_edge.status_code == 400

    missing = client.post("/v1/relationships", json=_edge(a, b + 100, "spouse", "wife"), headers=EDITOR)
    assert missing.status_code == 404

    unknown_type = client.post("/v1/relationships", json=_edge(a, b, "cousin", "brother"), headers=EDITOR)
    assert unknown_type.status_code == 422


def test_reversed_spouse_edge_is_a_duplicate(client):
    _, (husband, wife) = _family_with_persons(client, ("Gent", "male"), ("Hana", "female"))

    first = client.post("/v1/relationships", json=_edge(husband, wife, "spouse", "husband"), headers=EDITOR)
    assert first.status_code == 201
    reverse = client.post("/v1/relationships", json=_edge(wife, husband, "spouse", "wife"), headers=EDITOR)
    assert reverse.status_code == 409


def test_bulk_create_reports_created_and_skipped(client):
    _, (a, b, c) = _family_with_persons(client, ("Agron", "male"), ("Besim", "male"), ("Ceni", "female"))
    client.post("/v1/relationships", json=_edge(a, b, "parent_child", "father"), headers=EDITOR)

    response = client.post(
        "/v1/relationships/bulk",
        json={
            "relationships": [
                _edge(a, b, "parent_child", "father"),
                _edge(a, b, "parent_child", "father"),
                _edge(a, c, "parent_child", "father"),
            ]
        },
        headers=EDITOR,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["created"] == 1
    assert body["skipped"] == 2
    assert [item["person2_id"] for item in body["items"]] == [c]


def test_bulk_create_rejects_whole_batch_on_missing_person(client):
    family_id, (a, b) = _family_with_persons(client, ("Dafina", "female"), ("Edon", "male"))

    response = client.post(
        "/v1/relationships/bulk",
        json={"relationships": [_edge(a, b, "sibling", "sister"), _edge(a, b + 50, "sibling", "sister")]},
        headers=EDITOR,
    )
    assert response.status_code == 404
    assert client.get("/v1/relationships", params={"family_id": family_id}, headers=EDITOR).json()["items"] == []


def test_bulk_create_requires_at_least_one_item(client):
    response = client.post("/v1/relationships/bulk", json={"relationships": []}, headers=EDITOR)
    assert response.status_code == 422


def test_relationships_need_edit_access_on_both_families(client):
    _, (a, b) = _family_with_persons(client, ("Fatos", "male"), ("Gresa", "female"))

    response = client.post("/v1/relationships", json=_edge(a, b, "sibling", "brother"), headers=OUTSIDER)
    assert response.status_code == 403
    assert client.get("/v1/relationships", headers=OUTSIDER).json()["items"] == []


def test_relationships_between_unaffiliated_persons_need_global_admin(client, admin_headers):
    ids = []
    for name in ("Ylli", "Zana"):
        response = client.post(
            "/v1/persons",
            json={"first_name": name, "last_name": "Hoxha", "gender": "male" if name == "Ylli" else "female"},
            headers=EDITOR,
        )
        ids.append(response.json()["id"])

    payload = _edge(ids[0], ids[1], "spouse", "husband")
    assert client.post("/v1/relationships", json=payload, headers=EDITOR).status_code == 403
    assert client.post("/v1/relationships", json=payload, headers=admin_headers).status_code == 201


def test_update_can_clear_a_recorded_divorce(client):
    _, (husband, wife) = _family_with_persons(client, ("Jeton", "male"), ("Kaltrina", "female"))
    created = client.post(
        "/v1/relationships",
        json=_edge(husband, wife, "spouse", "ex_husband", marriage_date="1999-05-01", divorce_date="2004-02-01"),
        headers=EDITOR,
    )
    rel_id = created.json()["id"]

    update = client.put(
        f"/v1/relationships/{rel_id}",
        json={"relationship_subtype": "husband", "divorce_date": None},
        headers=EDITOR,
    )
    assert update.status_code == 200
    assert update.json()["divorce_date"] is None
    assert update.json()["marriage_date"] == "1999-05-01"
    assert client.get(f"/v1/relationships/{rel_id}", headers=EDITOR).json()["divorce_date"] is None

from factories import auth_headers

AUTHOR = auth_headers("author@example.com")
READER = auth_headers("reader@example.com")


def _post(client, headers=AUTHOR, **fields):
    payload = {"title": "Reunion", "content": "Summer gathering in Peja", **fields}
    response = client.post("/v1/posts", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_post_crud_and_comment_tree(client):
    post = _post(client, visibility="public")
    post_id = post["id"]
    assert post["comment_count"] == 0

    top = client.post(f"/v1/posts/{post_id}/comments", json={"content": "Count me in"}, headers=READER)
    assert top.status_code == 201
    reply = client.post(
        f"/v1/posts/{post_id}/comments",
        json={"content": "Great", "parent_comment_id": top.json()["id"]},
        headers=AUTHOR,
    )
    assert reply.status_code == 201

    detail = client.get(f"/v1/posts/{post_id}", headers=READER).json()
    assert detail["comment_count"] == 2
    assert len(detail["comments"]) == 1
    assert detail["comments"][0]["replies"][0]["content"] == "Great"

    foreign_edit = client.put(f"/v1/posts/{post_id}", json={"title": "Hijacked"}, headers=READER)
    assert foreign_edit.status_code == 403
    edit = client.put(f"/v1/posts/{post_id}", json={"title": "Reunion 2026"}, headers=AUTHOR)
    assert edit.status_code == 200
    assert edit.json()["title"] == "Reunion 2026"

    # Removing the top comment removes its replies too.
    removed = client.delete(f"/v1/posts/{post_id}/comments/{top.json()['id']}", headers=READER)
    assert removed.status_code == 204
    assert client.get(f"/v1/posts/{post_id}", headers=READER).json()["comments"] == []

    assert client.delete(f"/v1/posts/{post_id}", headers=AUTHOR).status_code == 204
    assert client.get(f"/v1/posts/{post_id}", headers=AUTHOR).status_code == 404


def test_reply_to_comment_on_another_post_is_rejected(client):
    first = _post(client, visibility="public")
    second = _post(client, visibility="public", title="Other")
    comment = client.post(f"/v1/posts/{first['id']}/comments", json={"content": "Hi"}, headers=AUTHOR).json()

    response = client.post(
        f"/v1/posts/{second['id']}/comments",
        json={"content": "Wrong thread", "parent_comment_id": comment["id"]},
        headers=AUTHOR,
    )
    assert response.status_code == 404


def test_family_posts_need_a_grant_even_in_public_families(client):
    family_id = client.post("/v1/families", json={"name": "Open Gashi", "is_public": True}, headers=AUTHOR).json()["id"]
    family_post = _post(client, visibility="family", family_id=family_id)
    public_post = _post(client, visibility="public", family_id=family_id, title="Announcement")

    assert client.get(f"/v1/posts/{family_post['id']}", headers=READER).status_code == 403
    listed = client.get("/v1/posts", headers=READER).json()
    assert [item["id"] for item in listed["items"]] == [public_post["id"]]

    own_list = client.get("/v1/posts", params={"family_id": family_id}, headers=AUTHOR).json()
    assert own_list["pagination"]["total"] == 2


def test_admin_posts_are_only_visible_to_admins(client, admin_headers):
    admin_post = _post(client, headers=admin_headers, visibility="admin")

    assert client.get(f"/v1/posts/{admin_post['id']}", headers=READER).status_code == 403
    assert client.get(f"/v1/posts/{admin_post['id']}", headers=admin_headers).status_code == 200


def test_posting_to_private_family_needs_grant(client):
    family_id = client.post("/v1/families", json={"name": "Closed Gashi"}, headers=AUTHOR).json()["id"]
    response = client.post(
        "/v1/posts",
        json={"title": "Hello", "content": "Let me in", "family_id": family_id},
        headers=READER,
    )
    assert response.status_code == 403


def test_post_list_is_paginated(client):
    for index in range(3):
        _post(client, visibility="public", title=f"Post {index}")

    page = client.get("/v1/posts", params={"limit": 2, "page": 2}, headers=READER).json()
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}
    assert [item["title"] for item in page["items"]] == ["Post 0"]

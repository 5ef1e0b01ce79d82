from urllib.parse import urlparse


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_token(client):
    response = client.get("/drive/files")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"

    response = client.get("/drive/files", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def _upload(client, headers, name, data, folder_id=None, content_type="text/plain"):
    form = {"folderId": str(folder_id)} if folder_id is not None else {}
    return client.post(
        "/drive/files/upload",
        headers=headers,
        files=[("files", (name, data, content_type))],
        data=form,
    )


def test_folder_upload_list_and_breadcrumbs(client, alice, auth_headers):
    headers = auth_headers(alice)

    folder = client.post("/drive/folders", headers=headers, json={"name": "Docs"})
    assert folder.status_code == 201
    docs_id = folder.json()["id"]

    first = _upload(client, headers, "a.txt", b"x" * 100, docs_id)
    assert first.status_code == 201
    assert first.json()["uploaded"] == 1
    second = _upload(client, headers, "b.txt", b"x" * 50, docs_id)
    assert second.json()["items"][0]["ok"]

    listing = client.get(
        "/drive/files", headers=headers, params={"folderId": docs_id, "sort": "size-asc"}
    ).json()
    assert [i["name"] for i in listing["items"]] == ["b.txt", "a.txt"]
    assert listing["total"] == 2

    searched = client.get(
        "/drive/files", headers=headers, params={"folderId": docs_id, "q": "A"}
    ).json()
    assert [i["name"] for i in searched["items"]] == ["a.txt"]
    assert searched["filtered"] == 1

    crumbs = client.get(
        "/drive/breadcrumbs", headers=headers, params={"folderId": docs_id}
    ).json()
    assert crumbs == {"complete": True, "path": [{"id": docs_id, "name": "Docs"}]}

    root = client.get("/drive/files", headers=headers).json()
    assert [i["name"] for i in root["items"]] == ["Docs"]


def test_empty_folder_id_is_not_root(client, alice, auth_headers):
    response = client.get("/drive/files", headers=auth_headers(alice), params={"folderId": ""})
    assert response.status_code == 422


def test_reupload_creates_version(client, alice, auth_headers):
    headers = auth_headers(alice)
    node_id = _upload(client, headers, "a.txt", b"one").json()["items"][0]["node"]["id"]
    again = _upload(client, headers, "a.txt", b"two").json()["items"][0]

    assert again["node"]["id"] == node_id
    assert again["versionNumber"] == 1

    versions = client.get(f"/drive/files/{node_id}/versions", headers=headers).json()
    assert [v["versionNumber"] for v in versions] == [1]

    old = client.get(
        f"/drive/files/{node_id}/versions/{versions[0]['id']}/download", headers=headers
    )
    assert old.content == b"one"

    current = client.get(f"/drive/files/{node_id}/download", headers=headers)
    assert current.content == b"two"


def test_favorite_trash_restore_purge(client, alice, auth_headers):
    headers = auth_headers(alice)
    node_id = _upload(client, headers, "a.txt", b"data").json()["items"][0]["node"]["id"]

    fav = client.post(f"/drive/files/{node_id}/favorite", headers=headers).json()
    assert fav == {"id": node_id, "isFavorite": True}
    favorites = client.get("/drive/files", headers=headers, params={"filter": "favorites"}).json()
    assert [i["id"] for i in favorites["items"]] == [node_id]

    deleted = client.delete(f"/drive/files/{node_id}", headers=headers)
    assert deleted.json()["isDeleted"] is True
    assert client.get("/drive/files", headers=headers).json()["items"] == []
    assert [n["id"] for n in client.get("/drive/trash", headers=headers).json()] == [node_id]

    restored = client.post(f"/drive/trash/{node_id}/restore", headers=headers)
    assert restored.json()["isDeleted"] is False

    assert client.delete(f"/drive/trash/{node_id}", headers=headers).status_code == 409

    client.delete(f"/drive/files/{node_id}", headers=headers)
    assert client.delete(f"/drive/trash/{node_id}", headers=headers).status_code == 204
    assert client.get(f"/drive/files/{node_id}/download", headers=headers).status_code == 404


def test_share_flow(client, alice, bob, auth_headers):
    node_id = _upload(client, auth_headers(alice), "a.txt", b"data").json()["items"][0]["node"]["id"]

    granted = client.post(
        f"/drive/files/{node_id}/shares",
        headers=auth_headers(alice),
        json={"email": "bob@example.com", "permission": "edit"},
    )
    assert granted.status_code == 201

    again = client.post(
        f"/drive/files/{node_id}/shares",
        headers=auth_headers(alice),
        json={"email": "bob@example.com"},
    )
    assert again.status_code == 409

    missing = client.post(
        f"/drive/files/{node_id}/shares",
        headers=auth_headers(alice),
        json={"email": "nobody@example.com"},
    )
    assert missing.status_code == 404

    shared = client.get("/drive/shared", headers=auth_headers(bob)).json()
    assert [(s["node"]["id"], s["permission"]) for s in shared] == [(node_id, "edit")]


def test_rename_move_and_usage(client, alice, auth_headers):
    headers = auth_headers(alice)
    docs_id = client.post("/drive/folders", headers=headers, json={"name": "Docs"}).json()["id"]
    node_id = _upload(client, headers, "a.txt", b"12345").json()["items"][0]["node"]["id"]

    moved = client.patch(
        f"/drive/files/{node_id}", headers=headers, json={"name": "b.txt", "parentId": docs_id}
    ).json()
    assert moved["name"] == "b.txt"
    assert moved["parentId"] == docs_id

    back = client.patch(f"/drive/files/{node_id}", headers=headers, json={"moveToRoot": True})
    assert back.json()["parentId"] is None

    bad = client.patch(f"/drive/files/{docs_id}", headers=headers, json={"parentId": docs_id})
    assert bad.status_code == 400

    usage = client.get("/drive/usage", headers=headers).json()
    assert usage["usedBytes"] == 5


def test_other_users_nodes_are_not_found(client, alice, bob, auth_headers):
    node_id = _upload(client, auth_headers(alice), "a.txt", b"data").json()["items"][0]["node"]["id"]
    response = client.get(f"/drive/files/{node_id}/download", headers=auth_headers(bob))
    assert response.status_code == 404


def test_upload_with_invalid_folder_id(client, alice, auth_headers):
    response = client.post(
        "/drive/files/upload",
        headers=auth_headers(alice),
        files=[("files", ("a.txt", b"x", "text/plain"))],
        data={"folderId": "abc"},
    )
    assert response.status_code == 400


def test_public_url_serves_content(client, alice, auth_headers):
    headers = auth_headers(alice)
    node_id = _upload(client, headers, "a b.txt", b"hello").json()["items"][0]["node"]["id"]

    url = client.get(f"/drive/files/{node_id}/url", headers=headers).json()["url"]
    response = client.get(urlparse(url).path)

    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"].startswith("text/plain")


def test_public_url_for_missing_blob(client):
    assert client.get("/public/1/nothing.txt").status_code == 404

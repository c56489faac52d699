from conftest import b64, register_and_login


def test_status_reports_both_stores(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert response.json() == {"redis": True, "db": True}

    client.redis.alive = False
    assert client.get("/status").json() == {"redis": False, "db": True}


def test_stats_counts_users_and_files(client):
    assert client.get("/stats").json() == {"users": 0, "files": 0}

    headers = register_and_login(client)
    client.post("/files", json={"name": "docs", "type": "folder"}, headers=headers)
    client.post("/files", json={"name": "a.txt", "type": "file", "data": b64(b"x")}, headers=headers)

    assert client.get("/stats").json() == {"users": 1, "files": 2}


def test_cache_outage_is_internal_error(client):
    headers = register_and_login(client)
    client.redis.alive = False
    response = client.get("/files", headers=headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_invalid_json_body(client):
    response = client.post("/users", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400

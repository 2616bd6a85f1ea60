from tests.conftest import hdr, register_user


async def test_register_and_me(client):
    user = await register_user(client, "Ann", email="Ann@Example.com", phone="+31 6 1234 5678")
    assert user["key"].startswith("hh_")

    resp = await client.get("/v1/me", headers=hdr(user["key"]))
    assert resp.status_code == 200
    me = resp.json()
    assert me["id"] == user["id"]
    assert me["email"] == "ann@example.com"
    assert me["phone"] == "+31612345678"
    assert me["role"] == "requester"


async def test_register_rejects_bad_email(client):
    resp = await client.post("/v1/register", json={"name": "Ann", "email": "not-an-email"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid email format"}


async def test_missing_auth(client):
    resp = await client.get("/v1/tasks")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Missing or invalid Authorization header"}

    resp = await client.get("/v1/tasks", headers=hdr("hh_wrong"))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid API key"


async def test_unknown_route_uses_error_shape(client):
    resp = await client.get("/v1/nope")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Not Found"}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

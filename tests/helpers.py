# tests/helpers.py


def register_user(client, email="ada@example.com", password="secret123", first="Ada", last="Lovelace"):
    resp = client.post(
        "/api/auth/register",
        json={"firstName": first, "lastName": last, "email": email, "password": password},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}

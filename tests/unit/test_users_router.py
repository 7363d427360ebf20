"""HTTP tests for account routes through the real application factory."""

from __future__ import annotations

from urllib.parse import quote

from httpx import AsyncClient

PREFIX = "/api/v1"
REGISTRATION = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "age": 36,
    "email": "ada@example.com",
    "password": "Secret#123",
    "confirmPassword": "Secret#123",
}


async def _register_and_login(client: AsyncClient) -> dict[str, str]:
    await client.post(f"{PREFIX}/users", json=REGISTRATION)
    response = await client.post(
        f"{PREFIX}/users/login", json={"email": "ada@example.com", "password": "Secret#123"}
    )
    return {"Authorization": f"Bearer {response.json()['token']}"}


async def test_account_scenario(client: AsyncClient, mail_sender, backend) -> None:
    """Register, log in, fail a login, request a reset and reject a garbage token."""
    registered = await client.post(f"{PREFIX}/users", json=REGISTRATION)
    assert registered.status_code == 201
    user_id = registered.json()["id"]

    login = await client.post(
        f"{PREFIX}/users/login", json={"email": "ada@example.com", "password": "Secret#123"}
    )
    assert login.status_code == 200
    assert login.json()["userId"] == user_id
    assert login.json()["tokenType"] == "bearer"
    assert login.json()["token"]

    wrong = await client.post(
        f"{PREFIX}/users/login", json={"email": "ada@example.com", "password": "nope"}
    )
    assert wrong.status_code == 401
    assert wrong.json() == {
        "detail": "Email or password are incorrect.",
        "code": "invalid_credentials",
    }

    forgot = await client.post(
        f"{PREFIX}/users/forgot-password", json={"email": "ada@example.com"}
    )
    assert forgot.status_code == 200
    assert forgot.json() == {"message": "Password reset email sent."}
    from lumo.models.user import User

    (user,) = backend.stores[User].rows
    assert user.reset_token_hash is not None

    garbage = await client.post(f"{PREFIX}/users/reset-password/garbage", json={
        "newPassword": "Fresh#456",
        "confirmPassword": "Fresh#456",
    })
    assert garbage.status_code == 400
    assert garbage.json()["code"] == "invalid_reset_token"


async def test_register_validation_lists_every_field(client: AsyncClient) -> None:
    response = await client.post(f"{PREFIX}/users", json={"email": "not-an-email"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    fields = {error["field"] for error in body["errors"]}
    assert {"firstName", "lastName", "age", "email", "password", "confirmPassword"} <= fields
    assert "not-an-email" not in response.text


async def test_register_without_body_is_validation_error(client: AsyncClient) -> None:
    response = await client.post(f"{PREFIX}/users")

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


async def test_malformed_json_is_validation_error(client: AsyncClient) -> None:
    response = await client.post(
        f"{PREFIX}/users",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


async def test_duplicate_registration_conflicts(client: AsyncClient) -> None:
    await client.post(f"{PREFIX}/users", json=REGISTRATION)
    response = await client.post(f"{PREFIX}/users", json=REGISTRATION)

    assert response.status_code == 409
    assert response.json() == {"detail": "Email already registered.", "code": "conflict"}


async def test_profile_requires_token(client: AsyncClient) -> None:
    anonymous = await client.get(f"{PREFIX}/users/me")
    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == "invalid_token"

    headers = await _register_and_login(client)
    profile = await client.get(f"{PREFIX}/users/me", headers=headers)
    assert profile.status_code == 200
    body = profile.json()
    assert body["email"] == "ada@example.com"
    assert body["firstName"] == "Ada"
    assert "passwordHash" not in body
    assert "resetTokenHash" not in body


async def test_forgot_password_unknown_email(client: AsyncClient) -> None:
    response = await client.post(
        f"{PREFIX}/users/forgot-password", json={"email": "nobody@example.com"}
    )

    assert response.status_code == 404


async def test_forgot_password_mail_failure_is_server_error(
    client: AsyncClient, mail_sender
) -> None:
    await client.post(f"{PREFIX}/users", json=REGISTRATION)
    mail_sender.fail = True

    response = await client.post(
        f"{PREFIX}/users/forgot-password", json={"email": "ada@example.com"}
    )

    assert response.status_code == 500
    assert response.json()["code"] == "internal_error"


async def test_reset_password_round_trip(client: AsyncClient, mail_sender) -> None:
    await client.post(f"{PREFIX}/users", json=REGISTRATION)
    await client.post(f"{PREFIX}/users/forgot-password", json={"email": "ada@example.com"})
    token = mail_sender.last_reset_token()
    new_password = {"newPassword": "Fresh#456", "confirmPassword": "Fresh#456"}

    first = await client.post(
        f"{PREFIX}/users/reset-password/{quote(token, safe='')}", json=new_password
    )
    second = await client.post(
        f"{PREFIX}/users/reset-password/{quote(token, safe='')}", json=new_password
    )
    login = await client.post(
        f"{PREFIX}/users/login", json={"email": "ada@example.com", "password": "Fresh#456"}
    )

    assert first.status_code == 200
    assert first.json() == {"message": "Password has been reset."}
    assert second.status_code == 400
    assert login.status_code == 200


async def test_update_profile_through_me(client: AsyncClient) -> None:
    headers = await _register_and_login(client)

    updated = await client.patch(
        f"{PREFIX}/users/me",
        json={"lastName": "King", "age": 37, "password": "ignored"},
        headers=headers,
    )
    invalid = await client.patch(f"{PREFIX}/users/me", json={"age": None}, headers=headers)
    anonymous = await client.patch(f"{PREFIX}/users/me", json={"age": 40})

    assert updated.status_code == 200
    assert updated.json()["lastName"] == "King"
    assert updated.json()["age"] == 37
    assert invalid.status_code == 400
    assert anonymous.status_code == 401
    login = await client.post(
        f"{PREFIX}/users/login", json={"email": "ada@example.com", "password": "Secret#123"}
    )
    assert login.status_code == 200


async def test_profile_by_id_only_resolves_own_account(client: AsyncClient) -> None:
    headers = await _register_and_login(client)
    me = (await client.get(f"{PREFIX}/users/me", headers=headers)).json()
    other = await client.post(
        f"{PREFIX}/users", json={**REGISTRATION, "email": "grace@example.com"}
    )

    own = await client.get(f"{PREFIX}/users/profile/{me['id']}", headers=headers)
    foreign = await client.get(f"{PREFIX}/users/profile/{other.json()['id']}", headers=headers)
    garbage = await client.get(f"{PREFIX}/users/profile/not-a-uuid", headers=headers)

    assert own.status_code == 200
    assert own.json()["email"] == "ada@example.com"
    assert foreign.status_code == 404
    assert garbage.status_code == 404
    assert foreign.json() == garbage.json()


async def test_delete_account_through_me(client: AsyncClient, backend) -> None:
    from lumo.models.user import User

    headers = await _register_and_login(client)

    deleted = await client.delete(f"{PREFIX}/users/me", headers=headers)
    again = await client.delete(f"{PREFIX}/users/me", headers=headers)
    profile = await client.get(f"{PREFIX}/users/me", headers=headers)

    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Account deleted."}
    assert again.status_code == 404
    assert profile.status_code == 404
    assert backend.stores[User].rows == []

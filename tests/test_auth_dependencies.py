"""Bearer token handling for staff endpoints."""

from centerdesk.auth.security import create_access_token
from centerdesk.main import app


async def test_missing_or_non_bearer_credentials_are_rejected(client, admin_user):
    token = create_access_token(subject={"sub": str(admin_user.id)})

    missing = await client.get("/api/v1/payments")
    basic = await client.get("/api/v1/payments", headers={"Authorization": f"Basic {token}"})
    garbage = await client.get("/api/v1/payments", headers={"Authorization": "Bearer not-a-jwt"})

    for response in (missing, basic, garbage):
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"


async def test_valid_bearer_token_is_accepted(client, auth_headers):
    response = await client.get("/api/v1/payments", headers=auth_headers)
    assert response.status_code == 200


def test_openapi_advertises_plain_bearer_scheme():
    schemes = app.openapi()["components"]["securitySchemes"]

    assert schemes == {"HTTPBearer": {"type": "http", "scheme": "bearer"}}

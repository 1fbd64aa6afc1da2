# tests/core/test_auth_dependencies.py
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import status
from httpx import AsyncClient

from app.core.tokens import create_access_token
from app.database.models import User


def _bearer(user_id, role: str, **kwargs) -> dict[str, str]:
    token = create_access_token({"sub": user_id, "role": role}, **kwargs)
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_bearer_token_authenticates_active_user(
    async_client: AsyncClient, override_db_with_test_session: None, client_user: User
) -> None:
    response = await async_client.get(
        "/hires", headers=_bearer(client_user.id, client_user.role.value)
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total_count"] == 0


@pytest.mark.asyncio
async def test_cookie_token_authenticates_active_user(
    async_client: AsyncClient, override_db_with_test_session: None, worker_user: User
) -> None:
    token = create_access_token({"sub": worker_user.id, "role": worker_user.role.value})
    async_client.cookies.set("access_token", token)

    response = await async_client.get("/hires")

    assert response.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_missing_token_returns_401(
    async_client: AsyncClient, override_db_with_test_session: None
) -> None:
    response = await async_client.get("/hires")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"]["code"] == "not_authenticated"
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_expired_token_returns_401(
    async_client: AsyncClient, override_db_with_test_session: None, client_user: User
) -> None:
    headers = _bearer(
        client_user.id, client_user.role.value, expires_delta=timedelta(minutes=-1)
    )

    response = await async_client.get("/hires", headers=headers)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_unknown_user_returns_401(
    async_client: AsyncClient, override_db_with_test_session: None
) -> None:
    response = await async_client.get("/hires", headers=_bearer(uuid4(), "CLIENT"))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_worker_cannot_list_completed_client_hires(
    async_client: AsyncClient, override_db_with_test_session: None, worker_user: User
) -> None:
    response = await async_client.get(
        "/hires/completed", headers=_bearer(worker_user.id, worker_user.role.value)
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"]["code"] == "forbidden"

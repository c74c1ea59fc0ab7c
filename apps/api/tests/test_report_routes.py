from datetime import datetime, timedelta, timezone
import time

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
import redis.asyncio as redis

from config import settings
from database import get_db
from main import app
from models.report_share_link import ReportShareLink
from models.user import User
from routers import rate_limit
from services.session_token import issue_session_token


OWNER_USER_ID = "owner-user"
OWNER_AUTH_HEADER = {"Authorization": f"Bearer {issue_session_token(OWNER_USER_ID, email='owner@example.com')}"}


@pytest_asyncio.fixture
async def report_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.pop(get_db, None)


@pytest.mark.asyncio
async def test_share_report_end_to_end(report_client, seeded_plan):
    client, _ = report_client

    created = await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)
    assert created.status_code == 201
    link = created.json()
    assert link["plan_id"] == seeded_plan
    assert link["created_by_user_id"] == OWNER_USER_ID
    assert link["share_url"].endswith(f"/share/{link['token']}")

    shared = await client.get(f"/public/reports/share/{link['token']}")
    assert shared.status_code == 200
    assert shared.headers["cache-control"] == "no-store"
    payload = shared.json()
    assert payload["share"]["token"] == link["token"]
    assert payload["plan"]["name"] == "Release 1"
    assert [item["test_case"]["folder_path"] for item in payload["plan"]["items"]] == [
        [{"id": "folder-a", "name": "A"}],
        [{"id": "folder-a", "name": "A"}, {"id": "folder-b", "name": "B"}],
        [{"id": "folder-a", "name": "A"}],
    ]


@pytest.mark.asyncio
async def test_public_report_distinguishes_unknown_and_revoked(report_client, seeded_plan):
    client, _ = report_client

    unknown = await client.get("/public/reports/share/not-a-real-token")
    assert unknown.status_code == 404

    link = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()
    revoked = await client.post(f"/reports/share-links/{link['id']}/revoke", headers=OWNER_AUTH_HEADER)
    assert revoked.status_code == 200
    assert revoked.json()["already_revoked"] is False

    again = await client.post(f"/reports/share-links/{link['id']}/revoke", headers=OWNER_AUTH_HEADER)
    assert again.status_code == 200
    assert again.json()["already_revoked"] is True
    assert again.json()["revoked_at"] == revoked.json()["revoked_at"]

    gone = await client.get(f"/public/reports/share/{link['token']}")
    assert gone.status_code == 410


@pytest.mark.asyncio
async def test_public_report_for_expired_link_is_gone(report_client, seeded_plan):
    client, session_maker = report_client
    link = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()

    async with session_maker() as session:
        await session.execute(
            update(ReportShareLink)
            .where(ReportShareLink.id == link["id"])
            .values(expires_at=datetime.now(timezone.utc) - timedelta(seconds=5))
        )
        await session.commit()

    response = await client.get(f"/public/reports/share/{link['token']}")
    assert response.status_code == 410


@pytest.mark.asyncio
async def test_list_share_links_returns_history(report_client, seeded_plan):
    client, _ = report_client
    first = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()
    second = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()
    await client.post(f"/reports/share-links/{first['id']}/revoke", headers=OWNER_AUTH_HEADER)

    response = await client.get(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)
    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["id"] for item in items] == [second["id"], first["id"]]
    assert items[1]["revoked_at"] is not None


@pytest.mark.asyncio
async def test_missing_plan_and_link_return_not_found(report_client):
    client, _ = report_client

    assert (await client.post("/reports/plans/missing/share-links", headers=OWNER_AUTH_HEADER)).status_code == 404
    assert (await client.get("/reports/plans/missing/share-links", headers=OWNER_AUTH_HEADER)).status_code == 404
    assert (await client.get("/reports/plans/missing", headers=OWNER_AUTH_HEADER)).status_code == 404
    assert (await client.post("/reports/share-links/missing/revoke", headers=OWNER_AUTH_HEADER)).status_code == 404


@pytest.mark.asyncio
async def test_owner_report_view_matches_shared_plan(report_client, seeded_plan):
    client, _ = report_client
    link = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()

    owner_view = await client.get(f"/reports/plans/{seeded_plan}", headers=OWNER_AUTH_HEADER)
    shared_view = await client.get(f"/public/reports/share/{link['token']}")

    assert owner_view.status_code == 200
    assert owner_view.json() == shared_view.json()["plan"]
    assert owner_view.json()["summary"]["pass_rate"] == 33.3


@pytest.mark.asyncio
async def test_share_management_requires_authentication(report_client, seeded_plan):
    client, _ = report_client

    assert (await client.post(f"/reports/plans/{seeded_plan}/share-links")).status_code == 401
    assert (await client.get(f"/reports/plans/{seeded_plan}/share-links")).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=bad)).status_code == 401

    stranger = {"Authorization": f"Bearer {issue_session_token('nobody')}"}
    assert (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=stranger)).status_code == 401


@pytest.mark.asyncio
async def test_deactivated_user_cannot_create_links(report_client, seeded_plan):
    client, session_maker = report_client
    async with session_maker() as session:
        await session.execute(update(User).where(User.id == OWNER_USER_ID).values(is_active=False))
        await session.commit()

    response = await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)
    assert response.status_code == 403


def _limited_app(limit: int) -> FastAPI:
    limited_app = FastAPI()

    @limited_app.get("/limited", dependencies=[Depends(rate_limit.rate_limit("test", limit=limit, window_seconds=60))])
    async def limited():
        return {"ok": True}

    return limited_app


@pytest.mark.asyncio
async def test_rate_limit_falls_back_to_local_counter(monkeypatch):
    async def redis_down(*args, **kwargs):
        raise redis.ConnectionError("redis unavailable")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", redis_down)

    async with AsyncClient(transport=ASGITransport(app=_limited_app(2)), base_url="http://test") as client:
        statuses = [(await client.get("/limited")).status_code for _ in range(3)]

    assert statuses == [200, 200, 429]


@pytest.mark.asyncio
async def test_rate_limit_ignores_forwarded_for_spoofing(monkeypatch):
    async def redis_down(*args, **kwargs):
        raise redis.ConnectionError("redis unavailable")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", redis_down)

    async with AsyncClient(transport=ASGITransport(app=_limited_app(2)), base_url="http://test") as client:
        statuses = [
            (await client.get("/limited", headers={"X-Forwarded-For": f"10.0.0.{i}"})).status_code
            for i in range(10)
        ]

    assert statuses[:2] == [200, 200]
    assert statuses.count(429) == 8
    assert len(rate_limit._local_counters) == 1


@pytest.mark.asyncio
async def test_local_counter_drops_expired_windows():
    rate_limit._local_counters["tms:rate:test:stale"] = (5, time.monotonic() - 1)

    assert await rate_limit._consume_local_quota("tms:rate:test:fresh", limit=1, window_seconds=60)
    assert "tms:rate:test:stale" not in rate_limit._local_counters
    assert rate_limit._local_counters["tms:rate:test:fresh"][0] == 1


@pytest.mark.asyncio
async def test_malformed_redis_url_falls_back_to_local_counter(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "not-a-redis-url")

    async with AsyncClient(transport=ASGITransport(app=_limited_app(1)), base_url="http://test") as client:
        statuses = [(await client.get("/limited")).status_code for _ in range(2)]

    assert statuses == [200, 429]


@pytest.mark.asyncio
async def test_public_report_route_is_rate_limited(report_client, seeded_plan, monkeypatch):
    client, _ = report_client
    link = (await client.post(f"/reports/plans/{seeded_plan}/share-links", headers=OWNER_AUTH_HEADER)).json()

    async def redis_down(*args, **kwargs):
        raise redis.ConnectionError("redis unavailable")

    monkeypatch.setattr(rate_limit, "_consume_redis_quota", redis_down)
    app.state.disable_rate_limits = False
    # The test transport reports the client as 127.0.0.1; start at the quota edge.
    rate_limit._local_counters["tms:rate:public_report:127.0.0.1"] = (
        settings.PUBLIC_REPORT_RATE_LIMIT - 1,
        time.monotonic() + 60,
    )

    allowed = await client.get(f"/public/reports/share/{link['token']}")
    blocked = await client.get(
        f"/public/reports/share/{link['token']}", headers={"X-Forwarded-For": "203.0.113.9"}
    )

    assert allowed.status_code == 200
    assert blocked.status_code == 429

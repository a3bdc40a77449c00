"""End-to-end checks through the HTTP API."""

from datetime import datetime, timedelta
import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the allowance_tracker package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from allowance_tracker.main import app
from allowance_tracker.database import get_session
from allowance_tracker.services.achievements import ensure_badge_catalog

API = "/api/v1"


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with TestSession() as session:
        await ensure_badge_catalog(session)

    return TestSession


async def _register(client, email, last_name):
    resp = await client.post(
        f"{API}/auth/register",
        json={
            "email": email,
            "password": "pass",
            "first_name": "Pat",
            "last_name": last_name,
        },
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_family_money_flow():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            parent = await _register(client, "parent@example.com", "Smith")
            stranger = await _register(client, "other@example.com", "Jones")

            resp = await client.post(
                f"{API}/children",
                json={
                    "email": "kid@example.com",
                    "password": "kidpass",
                    "first_name": "Kim",
                    "weekly_allowance": "5.00",
                },
                headers=parent,
            )
            assert resp.status_code == 201
            child_id = resp.json()["id"]

            # other families cannot see the child at all
            resp = await client.get(f"{API}/children/{child_id}", headers=stranger)
            assert resp.status_code == 404

            resp = await client.post(
                f"{API}/transactions",
                json={
                    "child_id": child_id,
                    "amount": "20.00",
                    "type": "Credit",
                    "category": "Chores",
                    "description": "Raked leaves",
                },
                headers=parent,
            )
            assert resp.status_code == 201
            assert resp.json()["balance_after"] == 20.0

            resp = await client.post(
                f"{API}/transactions",
                json={
                    "child_id": child_id,
                    "amount": "50.00",
                    "type": "Debit",
                    "category": "Toys",
                    "description": "Robot",
                },
                headers=parent,
            )
            assert resp.status_code == 400

            resp = await client.post(
                f"{API}/goals",
                json={"child_id": child_id, "name": "Skateboard", "target_amount": "40"},
                headers=parent,
            )
            assert resp.status_code == 201
            goal_id = resp.json()["id"]

            resp = await client.post(
                f"{API}/goals/{goal_id}/contribute",
                json={"amount": "10"},
                headers=parent,
            )
            assert resp.status_code == 200
            event = resp.json()
            assert event["new_amount"] == 10.0
            assert event["milestone_reached"] == 25

            resp = await client.get(
                f"{API}/transactions/children/{child_id}/balance", headers=parent
            )
            assert resp.status_code == 200
            assert resp.json()["current_balance"] == 10.0

    asyncio.run(run())


def test_child_login_and_permissions():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            parent = await _register(client, "parent@example.com", "Smith")
            resp = await client.post(
                f"{API}/children",
                json={"email": "kid@example.com", "password": "kidpass", "first_name": "Kim"},
                headers=parent,
            )
            child_id = resp.json()["id"]

            resp = await client.post(
                f"{API}/auth/login", json={"email": "kid@example.com", "password": "nope"}
            )
            assert resp.status_code == 401

            resp = await client.post(
                f"{API}/auth/login", json={"email": "kid@example.com", "password": "kidpass"}
            )
            assert resp.status_code == 200
            kid = {"Authorization": f"Bearer {resp.json()['access_token']}"}

            resp = await client.get(f"{API}/auth/me", headers=kid)
            assert resp.status_code == 200
            me = resp.json()
            assert me["role"] == "child"
            assert me["child_id"] == child_id
            assert "spend_points" in me["permissions"]
            assert "add_transaction" not in me["permissions"]

            # children cannot record ledger entries
            resp = await client.post(
                f"{API}/transactions",
                json={
                    "child_id": child_id,
                    "amount": "1.00",
                    "type": "Credit",
                    "category": "Gift",
                    "description": "Found money",
                },
                headers=kid,
            )
            assert resp.status_code == 403

            resp = await client.get(f"{API}/transactions/children/{child_id}", headers=kid)
            assert resp.status_code == 200

            resp = await client.get(f"{API}/auth/me")
            assert resp.status_code == 401

    asyncio.run(run())


def test_gift_portal_is_public():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            parent = await _register(client, "parent@example.com", "Smith")
            resp = await client.post(
                f"{API}/children",
                json={"email": "kid@example.com", "password": "kidpass", "first_name": "Kim"},
                headers=parent,
            )
            child_id = resp.json()["id"]

            resp = await client.post(
                f"{API}/gift-links",
                json={"child_id": child_id, "name": "Birthday", "max_amount": "100"},
                headers=parent,
            )
            assert resp.status_code == 201
            token = resp.json()["token"]
            assert resp.json()["portal_url"].endswith(token)

            resp = await client.get(f"{API}/gifts/portal/{token}")
            assert resp.status_code == 200
            assert resp.json()["child_first_name"] == "Kim"

            resp = await client.post(
                f"{API}/gifts/portal/{token}/submit",
                json={"giver_name": "Grandpa", "amount": "150"},
            )
            assert resp.status_code == 400

            resp = await client.post(
                f"{API}/gifts/portal/{token}/submit",
                json={"giver_name": "Grandpa", "amount": "25"},
            )
            assert resp.status_code == 201
            gift_id = resp.json()["gift_id"]

            resp = await client.get(f"{API}/gifts/pending", headers=parent)
            assert [g["id"] for g in resp.json()] == [gift_id]

            resp = await client.post(
                f"{API}/gifts/{gift_id}/approve", json={}, headers=parent
            )
            assert resp.status_code == 200
            assert resp.json()["status"] == "Approved"

            resp = await client.get(f"{API}/gifts/portal/not-a-token")
            assert resp.status_code == 404

    asyncio.run(run())


def test_challenge_end_date_with_utc_suffix():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            parent = await _register(client, "parent@example.com", "Smith")
            resp = await client.post(
                f"{API}/children",
                json={"email": "kid@example.com", "password": "kidpass", "first_name": "Kim"},
                headers=parent,
            )
            child_id = resp.json()["id"]
            resp = await client.post(
                f"{API}/goals",
                json={"child_id": child_id, "name": "Kite", "target_amount": "30"},
                headers=parent,
            )
            goal_id = resp.json()["id"]

            ends = (datetime.utcnow() + timedelta(days=7)).strftime("%Y-%m-%dT%H:%M:%SZ")
            resp = await client.post(
                f"{API}/goals/{goal_id}/challenge",
                json={"target_amount": "20", "end_date": ends, "bonus_amount": "5"},
                headers=parent,
            )
            assert resp.status_code == 201
            assert resp.json()["status"] == "Active"

            resp = await client.post(
                f"{API}/goals/{goal_id}/match",
                json={
                    "matching_type": "RatioMatch",
                    "match_ratio": "1",
                    "expires_at": "2099-01-01T00:00:00+02:00",
                },
                headers=parent,
            )
            assert resp.status_code == 201

            resp = await client.post(
                f"{API}/goals",
                json={"child_id": child_id, "name": "Drum", "target_amount": "40"},
                headers=parent,
            )
            other_goal_id = resp.json()["id"]
            past = (datetime.utcnow() - timedelta(days=1)).strftime("%Y-%m-%dT%H:%M:%SZ")
            resp = await client.post(
                f"{API}/goals/{other_goal_id}/challenge",
                json={"target_amount": "20", "end_date": past, "bonus_amount": "5"},
                headers=parent,
            )
            assert resp.status_code == 400
            assert "future" in resp.json()["detail"]

    asyncio.run(run())

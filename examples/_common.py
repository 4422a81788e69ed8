"""
Shared helpers for AuraTask examples.

Handles the health check and account setup so each example can focus on
its specific workflow.
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api/v1"


def check_backend() -> None:
    """Verify the backend is reachable and its database is up."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Backend not reachable at {BASE}")
        print("Start it with:  uvicorn auratask.main:app --reload --port 8000")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Backend health:")
    print(f"  Database: {'✓' if health['database'] == 'ok' else '✗'}")
    print(f"  Redis:    {'✓' if health['redis'] == 'ok' else '✗ (rate limiting off)'}")

    if health["database"] != "ok":
        print("\nERROR: Database is not connected.")
        sys.exit(1)


def register_and_login(email: str | None = None) -> dict:
    """Register an account (fresh email per run unless given) and log in.

    Returns {"email", "user_id", "access_token"}.
    """
    run_id = uuid.uuid4().hex[:8]
    email = email or f"demo-{run_id}@example.com"
    password = "demo-password-123"

    resp = httpx.post(
        f"{BASE}/auth/register",
        json={"email": email, "name": f"Demo User {run_id}", "password": password},
        timeout=10,
    )
    if resp.status_code not in (201, 409):  # 409 = already exists
        print(f"ERROR: Registration failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    resp = httpx.post(
        f"{BASE}/auth/login",
        json={"email": email, "password": password},
        timeout=10,
    )
    if resp.status_code != 200:
        print(f"ERROR: Login failed: {resp.status_code} {resp.text}")
        sys.exit(1)

    token = resp.json()["access_token"]
    me = httpx.get(
        f"{BASE}/auth/me", headers={"Authorization": f"Bearer {token}"}, timeout=10
    ).json()
    return {"email": email, "user_id": me["id"], "access_token": token}


def client_for(token: str) -> httpx.Client:
    """An httpx Client that sends the given bearer token."""
    return httpx.Client(
        base_url=BASE,
        timeout=30,
        headers={"Authorization": f"Bearer {token}"},
    )

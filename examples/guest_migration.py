#!/usr/bin/env python3
"""
AuraTask guest flow — work as a guest, sign up, keep your data.

Starts a guest session, runs a couple of AI-assisted task analyses
(served from the shared key pool, or defaults when it is empty), then
registers an account and migrates the guest's data into it.

Run with: python examples/guest_migration.py
Backend must be running: http://localhost:8000
"""

import httpx

from _common import BASE, check_backend, client_for, register_and_login


def main():
    check_backend()

    # ── Guest session ─────────────────────────────────────────────
    print("\n1. Starting a guest session...")
    resp = httpx.post(f"{BASE}/auth/guest", timeout=10)
    assert resp.status_code == 201, f"Failed: {resp.text}"
    guest = resp.json()
    print(f"   Guest id: {guest['guest_id']}")

    with client_for(guest["access_token"]) as as_guest:
        print("\n2. Analyzing a task as the guest...")
        resp = as_guest.post("/ai/process-task", json={
            "title": "Plan the team offsite",
            "description": "Venue, agenda and travel for 12 people",
            "enable_ai_ranking": True,
            "enable_ai_subtasks": True,
        })
        analysis = resp.json()
        source = "AI" if analysis["ai_generated"] else "defaults (no key available)"
        print(f"   {analysis['emoji']} speed={analysis['ai_speed_score']} "
              f"importance={analysis['ai_importance_score']} via {source}")
        for sub in analysis["sub_tasks"]:
            print(f"     - {sub}")

        # Guests cannot migrate on anyone's behalf
        resp = as_guest.post("/migrate-guest-data", json={
            "guest_user_id": guest["guest_id"],
            "new_user_id": guest["guest_id"],
        })
        print(f"   Guest calling migrate directly: {resp.status_code} (expected 400/403)")

    # ── Sign up + migrate ─────────────────────────────────────────
    print("\n3. Signing up...")
    account = register_and_login()
    print(f"   Account: {account['email']} ({account['user_id'][:8]}...)")

    print("\n4. Migrating guest data into the new account...")
    with client_for(account["access_token"]) as as_user:
        body = {"guest_user_id": guest["guest_id"], "new_user_id": account["user_id"]}
        resp = as_user.post("/migrate-guest-data", json=body)
        assert resp.status_code == 200, f"Failed: {resp.text}"
        result = resp.json()
        print(f"   {result['message']}: {result['stats']}")

        # Running it again is a harmless no-op
        resp = as_user.post("/migrate-guest-data", json=body)
        print(f"   Again: {resp.json()['message']}")

    print("\nDone.")


if __name__ == "__main__":
    main()

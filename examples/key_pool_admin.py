#!/usr/bin/env python3
"""
AuraTask key pool — watch least-used-first selection at work.

Needs an administrator account: start the backend with
AURATASK_ADMIN_EMAILS='["admin@example.com"]' and pass that email.
Adds three pooled keys, fires a few AI requests, and prints how usage
spreads across the pool.

Run with: python examples/key_pool_admin.py admin@example.com
Backend must be running: http://localhost:8000
"""

import sys
import uuid

from _common import check_backend, client_for, register_and_login


def print_pool(client) -> None:
    for key in client.get("/admin/pool-keys").json():
        state = "active" if key["is_active"] else "inactive"
        print(f"   #{key['id']:<3} {key['masked_key']:<14} {state:<8} "
              f"usage={key['usage_count']}")


def main():
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    check_backend()
    admin = register_and_login(sys.argv[1])
    run_id = uuid.uuid4().hex[:6]

    with client_for(admin["access_token"]) as client:
        print("\n1. Adding three pooled keys...")
        added = []
        for n in range(3):
            resp = client.post("/admin/pool-keys", json={
                "api_key": f"demo-key-{run_id}-{n}",
                "label": f"demo {n}",
            })
            if resp.status_code == 403:
                print("   ERROR: account is not an administrator")
                sys.exit(1)
            assert resp.status_code == 201, f"Failed: {resp.text}"
            added.append(resp.json())
        print_pool(client)

        print("\n2. Deactivating one key...")
        client.post(f"/admin/pool-keys/{added[2]['id']}/toggle")

        print("\n3. Six AI requests (no personal key, so each borrows from the pool)...")
        for i in range(6):
            client.post("/ai/group-emoji", json={"group_name": f"Group {i}"})
        print_pool(client)

        print("\n4. Cleaning up...")
        for key in added:
            client.delete(f"/admin/pool-keys/{key['id']}")

    print("\nDone.")


if __name__ == "__main__":
    main()

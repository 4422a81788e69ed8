"""AuraTask admin CLI — manage the shared key pool, migrate guest data.

Usage:
    auratask health                        # Server + dependency status
    auratask keys list                     # Pooled keys with usage counts
    auratask keys add AIza... --label ci   # Add a key to the pool
    auratask keys toggle 3                 # Activate / deactivate key 3
    auratask keys reset 3                  # Zero key 3's usage count
    auratask keys delete 3                 # Remove key 3
    auratask migrate-guest GUEST_ID        # Move a guest's data into your account

Talks to the HTTP API at AURATASK_API_URL with the bearer token in
AURATASK_TOKEN (an access token from POST /auth/login).
"""

from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import json
import os
import sys

import click
import httpx

from auratask import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("AURATASK_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the AuraTask backend."""
    headers = {}
    token = os.environ.get("AURATASK_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. under
    CliRunner inside async tests).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "-"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _fail(resp: httpx.Response) -> None:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _token_subject() -> str | None:
    """The `sub` claim of AURATASK_TOKEN, read without verifying it."""
    token = os.environ.get("AURATASK_TOKEN", "")
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        return json.loads(base64.urlsafe_b64decode(payload)).get("sub")
    except (IndexError, ValueError):
        return None


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="auratask")
def main():
    """AuraTask — key pool administration and guest migration."""


@main.command()
def health():
    """Show server and dependency health."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        r = await c.get("/api/v1/health")
    if r.status_code != 200:
        _fail(r)
    data = r.json()
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(f"Status: {data.get('status')}", fg=color, bold=True)
    for name in ("server", "database", "redis"):
        click.echo(f"  {name:<9} {data.get(name)}")


# ---------------------------------------------------------------------------
# auratask keys ...
# ---------------------------------------------------------------------------


@main.group()
def keys():
    """Manage the shared API key pool (admin only)."""


@keys.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def keys_list(as_json: bool):
    """List pooled keys, least used first."""
    _run(_keys_list_impl(as_json))


async def _keys_list_impl(as_json: bool):
    async with _client() as c:
        r = await c.get("/api/v1/admin/pool-keys")
    if r.status_code != 200:
        _fail(r)
    rows = sorted(r.json(), key=lambda k: (k["usage_count"], k["id"]))
    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No pooled keys.")
        return
    for row in rows:
        row["state"] = "active" if row["is_active"] else "inactive"
    _print_table(rows, [
        ("ID", "id", 5),
        ("KEY", "masked_key", 14),
        ("LABEL", "label", 20),
        ("STATE", "state", 9),
        ("USAGE", "usage_count", 8),
        ("LAST USED", "last_used_at", 26),
    ])


@keys.command("add")
@click.argument("api_key")
@click.option("--label", default="", help="Human-readable label")
def keys_add(api_key: str, label: str):
    """Add API_KEY to the pool."""
    _run(_keys_call("POST", "/api/v1/admin/pool-keys",
                    json_body={"api_key": api_key, "label": label},
                    ok_message="Key added"))


@keys.command("toggle")
@click.argument("key_id", type=int)
def keys_toggle(key_id: int):
    """Activate or deactivate a pooled key."""
    _run(_keys_call("POST", f"/api/v1/admin/pool-keys/{key_id}/toggle",
                    ok_message="Key toggled"))


@keys.command("reset")
@click.argument("key_id", type=int)
@click.confirmation_option(prompt="Reset this key's usage count to 0?")
def keys_reset(key_id: int):
    """Zero a pooled key's usage count."""
    _run(_keys_call("POST", f"/api/v1/admin/pool-keys/{key_id}/reset-usage",
                    ok_message="Usage reset"))


@keys.command("delete")
@click.argument("key_id", type=int)
@click.confirmation_option(prompt="Delete this key from the pool?")
def keys_delete(key_id: int):
    """Remove a key from the pool."""
    _run(_keys_call("DELETE", f"/api/v1/admin/pool-keys/{key_id}",
                    ok_message="Key deleted"))


async def _keys_call(method: str, path: str, ok_message: str,
                     json_body: dict | None = None):
    async with _client() as c:
        r = await c.request(method, path, json=json_body)
    if r.status_code not in (200, 201):
        _fail(r)
    data = r.json()
    click.secho(ok_message, fg="green")
    if "is_active" in data:
        state = "active" if data["is_active"] else "inactive"
        click.echo(f"  #{data['id']} {data.get('masked_key')} {state} "
                   f"usage={data['usage_count']}")


# ---------------------------------------------------------------------------
# auratask migrate-guest
# ---------------------------------------------------------------------------


@main.command("migrate-guest")
@click.argument("guest_id")
@click.option("--user-id", help="Target account id (defaults to the token's subject)")
def migrate_guest(guest_id: str, user_id: str | None):
    """Move all data owned by GUEST_ID into your account."""
    target = user_id or _token_subject()
    if not target:
        click.secho("Error: set AURATASK_TOKEN or pass --user-id", fg="red", err=True)
        sys.exit(1)
    _run(_migrate_impl(guest_id, target))


async def _migrate_impl(guest_id: str, user_id: str):
    async with _client() as c:
        r = await c.post("/api/v1/migrate-guest-data", json={
            "guest_user_id": guest_id,
            "new_user_id": user_id,
        })
    if r.status_code != 200:
        _fail(r)
    data = r.json()
    click.secho(data["message"], fg="green")
    for name, count in data["stats"].items():
        click.echo(f"  {name:<12} {count}")
    for name, count in data.get("discarded", {}).items():
        if count:
            click.echo(f"  {name:<12} {count} discarded (account already had its own)")


if __name__ == "__main__":
    main()

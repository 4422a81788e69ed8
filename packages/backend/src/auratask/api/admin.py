"""Admin API — managing the shared key pool.

- GET /admin/pool-keys → list keys (masked) with usage counts
- POST /admin/pool-keys → add a key (409 on duplicates)
- POST /admin/pool-keys/:id/toggle → activate / deactivate
- POST /admin/pool-keys/:id/reset-usage → zero the usage count
- DELETE /admin/pool-keys/:id → remove a key

Every route requires an admin account.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.auth.dependencies import CurrentIdentity, require_admin
from auratask.db.engine import get_db
from auratask.schemas.credential import PoolKeyCreate, PoolKeyRead
from auratask.services.credential_pool import (
    CredentialPool,
    DuplicatePoolKeyError,
    PoolKeyNotFoundError,
)

router = APIRouter(prefix="/admin")


def _pool(db: AsyncSession = Depends(get_db)) -> CredentialPool:
    return CredentialPool(db)


@router.get("/pool-keys", response_model=list[PoolKeyRead])
async def list_pool_keys(
    _admin: CurrentIdentity = Depends(require_admin),
    pool: CredentialPool = Depends(_pool),
):
    return await pool.list_keys()


@router.post("/pool-keys", response_model=PoolKeyRead, status_code=201)
async def add_pool_key(
    body: PoolKeyCreate,
    admin: CurrentIdentity = Depends(require_admin),
    pool: CredentialPool = Depends(_pool),
):
    """Add a key to the pool. New keys start active with zero usage."""
    try:
        return await pool.add_key(body.api_key, label=body.label, actor_id=admin.user_id)
    except DuplicatePoolKeyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/pool-keys/{key_id}/toggle", response_model=PoolKeyRead)
async def toggle_pool_key(
    key_id: int,
    admin: CurrentIdentity = Depends(require_admin),
    pool: CredentialPool = Depends(_pool),
):
    try:
        return await pool.toggle_key(key_id, actor_id=admin.user_id)
    except PoolKeyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/pool-keys/{key_id}/reset-usage", response_model=PoolKeyRead)
async def reset_pool_key_usage(
    key_id: int,
    admin: CurrentIdentity = Depends(require_admin),
    pool: CredentialPool = Depends(_pool),
):
    try:
        return await pool.reset_usage(key_id, actor_id=admin.user_id)
    except PoolKeyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/pool-keys/{key_id}")
async def delete_pool_key(
    key_id: int,
    admin: CurrentIdentity = Depends(require_admin),
    pool: CredentialPool = Depends(_pool),
):
    try:
        await pool.delete_key(key_id, actor_id=admin.user_id)
    except PoolKeyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True, "id": key_id}

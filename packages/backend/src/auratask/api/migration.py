"""Guest migration API.

POST /migrate-guest-data with {guest_user_id, new_user_id}. The bearer
token must belong to new_user_id itself.

Responses: 200 with per-table counts (all zero when there was nothing
left to move), 400 missing/invalid ids, 401 no token, 403 identity
mismatch, a guest caller, or a source id that is a registered account,
500 transfer failed with nothing changed.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from auratask.auth.dependencies import CurrentIdentity, get_current_user
from auratask.db.engine import get_db
from auratask.schemas.migration import MigrationRead, MigrationRequest
from auratask.services.migration_service import (
    MigrationBadRequestError,
    MigrationFailedError,
    MigrationService,
    MigrationUnauthorizedError,
)

router = APIRouter()


def _migration_svc(db: AsyncSession = Depends(get_db)) -> MigrationService:
    return MigrationService(db)


@router.post("/migrate-guest-data", response_model=MigrationRead)
async def migrate_guest_data(
    body: MigrationRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: MigrationService = Depends(_migration_svc),
):
    """Move everything the guest owns into the caller's account."""
    try:
        result = await svc.migrate(
            guest_id=body.guest_user_id,
            target_user_id=body.new_user_id,
            caller=identity.principal,
        )
    except MigrationBadRequestError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MigrationUnauthorizedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except MigrationFailedError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "message": (
            "Nothing to migrate"
            if result.nothing_to_migrate
            else "Data migration successful"
        ),
        "guest_user_id": result.guest_id,
        "new_user_id": result.target_user_id,
        "stats": result.moved,
        "discarded": result.discarded,
    }

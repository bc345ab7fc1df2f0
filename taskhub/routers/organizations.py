from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.authz import AuthzContext, Operation, Resource
from taskhub.db.session import get_db
from taskhub.models.tenancy import Organization
from taskhub.security.dependencies import authorize, require_platform_member

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.delete(
    "/{id:int}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_platform_member)],
)
async def delete_organization(
    id: int,
    decision: AuthzContext = Depends(authorize(Resource.ORGANIZATION, Operation.DELETE)),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Soft-delete a tenant. Platform members only."""

    org = (await db.scalars(select(Organization).where(Organization.id == id))).first()
    if org is None or org.is_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    org.is_deleted = True
    await db.commit()
    logger.info("Organization soft-deleted id=%s by user_id=%s scope=%s", id, decision.user_id, decision.scope.value)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Integrations API: connect / update / disconnect / test."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from crosswrite.db import get_db
from crosswrite.dependencies import get_current_user_id
from crosswrite.schemas.common import ApiResponse, ok
from crosswrite.schemas.integrations import (
    IntegrationConnectRequest,
    IntegrationOut,
    IntegrationTestOut,
    IntegrationUpdateRequest,
)
from crosswrite.services.integration_service import (
    connect_integration,
    disconnect_integration,
    list_integrations,
    recheck_integration,
    update_integration,
)

router = APIRouter(prefix="/api/integrations", tags=["integrations"])


def _raise_for(e: ValueError) -> None:
    code = str(e)
    if code == "integration_not_found":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Integration not found")
    if code == "unsupported_platform":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported platform")
    if code == "already_connected":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Platform is already connected")
    if code == "invalid_sync_interval":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Sync interval must be at least 1 minute")
    if code.startswith("connection_failed:"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=code.split(":", 1)[1])
    if "requires API key" in code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=code)
    raise e


@router.get("", response_model=ApiResponse[list[IntegrationOut]])
async def get_integrations(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items = await list_integrations(db, user_id)
    return ok([IntegrationOut.model_validate(i) for i in items])


@router.post("", response_model=ApiResponse[IntegrationOut], status_code=status.HTTP_201_CREATED)
async def post_integration(
    payload: IntegrationConnectRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Kết nối platform: credential được kiểm tra qua API của platform trước khi lưu."""
    try:
        integration = await connect_integration(
            db,
            user_id,
            platform=payload.platform,
            api_key=payload.api_key,
            publication_id=payload.publication_id,
        )
    except ValueError as e:
        _raise_for(e)
    return ok(IntegrationOut.model_validate(integration))


@router.patch("/{integration_id}", response_model=ApiResponse[IntegrationOut])
async def patch_integration(
    integration_id: UUID,
    payload: IntegrationUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        integration = await update_integration(db, user_id, integration_id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        _raise_for(e)
    return ok(IntegrationOut.model_validate(integration))


@router.delete("/{integration_id}", response_model=ApiResponse[dict])
async def delete_integration(
    integration_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        await disconnect_integration(db, user_id, integration_id)
    except ValueError as e:
        _raise_for(e)
    return ok({"disconnected": True, "id": str(integration_id)})


@router.post("/{integration_id}/test", response_model=ApiResponse[IntegrationTestOut])
async def post_integration_test(
    integration_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Test lại kết nối; status integration cập nhật connected | error."""
    try:
        integration, result = await recheck_integration(db, user_id, integration_id)
    except ValueError as e:
        _raise_for(e)
    return ok(IntegrationTestOut(
        integration=IntegrationOut.model_validate(integration),
        success=result.success,
        error=result.error,
    ))

"""
App + API key management routes (dashboard side).

Assumptions:
- Sync SQLAlchemy session via Depends(get_db)
- Caller identity comes from the bearer token (get_current_user)
- Raw API keys appear only in the response that minted them
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from usage_analytics.database import get_db
from usage_analytics.middleware.audit_log import audit_log
from usage_analytics.middleware.auth_middleware import AuthContext, get_current_user
from usage_analytics.schemas.app import (
    AppCreate, AppList, AppRegistered, AppResponse,
    APIKeyList, APIKeySummary, MessageResponse,
)
from usage_analytics.services.lifecycle_service import LifecycleService

router = APIRouter(prefix="/apps", tags=["Apps & API Keys"])


def get_lifecycle_service(db: Session = Depends(get_db)) -> LifecycleService:
    return LifecycleService(db)


@router.post("", response_model=AppRegistered)
def register_app(
    data: AppCreate,
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Register a new app and mint its first API key.

    Returns the API key only once.
    """
    app, raw_key = service.register_app(auth.caller_id, data.name, data.domain, data.description)

    audit_log(
        action="app.create",
        actor_id=auth.caller_id,
        resource_type="app",
        resource_id=app.id,
        details={"name": app.name, "domain": app.domain},
        request=request,
        db=service.session,
    )
    return AppRegistered(app=AppResponse.model_validate(app), api_key=raw_key)


@router.get("", response_model=AppList)
def list_apps(
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """List the caller's apps, newest first."""
    return AppList(apps=[AppResponse.model_validate(a) for a in service.list_apps(auth.caller_id)])


@router.delete("/{app_id}", response_model=MessageResponse)
def delete_app(
    app_id: str,
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Delete an app along with all of its API keys and events."""
    deleted_id = service.delete_app(app_id, auth.caller_id)

    audit_log(
        action="app.delete",
        actor_id=auth.caller_id,
        resource_type="app",
        resource_id=deleted_id,
        request=request,
        db=service.session,
    )
    return {"message": "App deleted successfully"}


@router.post("/{app_id}/keys", response_model=AppRegistered)
def issue_api_key(
    app_id: str,
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Mint an additional API key for an app.
    Returns the full API key only once.
    """
    app, raw_key = service.issue_key(app_id, auth.caller_id)

    audit_log(
        action="key.issue",
        actor_id=auth.caller_id,
        resource_type="app",
        resource_id=app.id,
        request=request,
        db=service.session,
    )
    return AppRegistered(app=AppResponse.model_validate(app), api_key=raw_key)


@router.get("/{app_id}/keys", response_model=APIKeyList)
def list_api_keys(
    app_id: str,
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """List an app's API keys (prefix, status and timestamps only)."""
    keys = service.list_keys(app_id, auth.caller_id)
    return APIKeyList(api_keys=[APIKeySummary.model_validate(k) for k in keys])

"""API key revocation route."""

from fastapi import APIRouter, Depends, Request

from usage_analytics.middleware.audit_log import audit_log
from usage_analytics.middleware.auth_middleware import AuthContext, get_current_user
from usage_analytics.routes.app_routes import get_lifecycle_service
from usage_analytics.schemas.app import MessageResponse
from usage_analytics.services.lifecycle_service import LifecycleService

router = APIRouter(prefix="/keys", tags=["Apps & API Keys"])


@router.post("/{key_id}/revoke", response_model=MessageResponse)
def revoke_api_key(
    key_id: str,
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Revoke an API key (immediate effect). Revoking twice is not an error."""
    key = service.revoke_key(key_id, auth.caller_id)

    audit_log(
        action="key.revoke",
        actor_id=auth.caller_id,
        resource_type="api_key",
        resource_id=key.id,
        details={"prefix": key.key_prefix},
        request=request,
        db=service.session,
    )
    return {"message": "API key revoked successfully"}

"""Current user endpoint."""

from fastapi import APIRouter, Depends

from office_console.core.auth import RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return current authenticated user profile and canonical role."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "display_name": context.display_name,
        "role": context.role.value,
        "client_id": str(context.client_id) if context.client_id else None,
    }

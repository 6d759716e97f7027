"""Auth API router: login, me."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from scriptgate.db.session import get_db
from scriptgate.schemas.schemas import Identity, LoginRequest, TokenResponse, UserOut
from scriptgate.services.auth_service import auth_service
from scriptgate.services.audit_service import AuditAction, audit_service
from scriptgate.core.security import get_current_identity
from scriptgate.core.exceptions import AuthenticationError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token."""
    try:
        result = auth_service.authenticate(db, body.username, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    user = result["user"]
    actor = Identity(user_id=user["id"], username=user["username"], role=user["role"])
    audit_service.log(
        db, actor, AuditAction.user_login,
        resource_id=user["id"],
        request=request,
    )
    return result


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Get current user profile."""
    return UserOut.model_validate(auth_service.get_user(db, identity.user_id))

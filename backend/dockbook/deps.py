from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .core.context import RequestContext
from .core.errors import AuthorizationError
from .core.permissions import Action, Resource
from .core.security import decode_token
from .database import get_db
from .models.user import User

oauth2 = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_user(token: str = Depends(oauth2), db: Session = Depends(get_db)) -> User:
    data = decode_token(token)
    if not data or "sub" not in data:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.query(User).filter(User.email == data["sub"]).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user


def get_context(request: Request, user: User = Depends(get_current_user)) -> RequestContext:
    return RequestContext(
        user_id=user.id,
        user_type=user.user_type,
        company_id=user.company_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def require_permission(resource: Resource, action: Action):
    def dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        if not ctx.can(resource, action):
            raise AuthorizationError(f"missing permission {resource.value}:{action.value}")
        return ctx
    return dep

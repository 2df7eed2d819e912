# app/utils/auth.py
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from datetime import timedelta
import jwt
from typing import Dict, Optional

# Local imports
from app.database import get_db
from app.config import settings
from app.models.all_models import User, UserRole, STAFF_ROLES, clinic_now

# missing credentials are reported as 401 below, not as HTTPBearer's own error
security = HTTPBearer(auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )

def create_access_token(data: Dict[str, str], expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = clinic_now() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def verify_token(token: str, token_type: str = "access") -> Dict:
    """Verify a JWT token and return its payload."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.PyJWTError:
        raise _unauthorized("Invalid token")

    if payload.get("type") != token_type:
        raise _unauthorized(f"Invalid token type, expected {token_type}")
    return payload

def _user_from_token(token: str, db: Session) -> User:
    payload = verify_token(token, token_type="access")
    user_id = payload.get("sub")

    if user_id is None:
        raise _unauthorized("Invalid authentication credentials")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid authentication credentials")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return user

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Retrieve the current authenticated user from the JWT token."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    return _user_from_token(credentials.credentials, db)

async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Like get_current_user, but anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)

async def require_staff(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Dependency to require a staff-class role (staff, admin).

    Usage:
    @router.get("/staff-only")
    async def staff_only_route(user: User = Depends(require_staff)):
        return {"message": "Welcome staff member!"}
    """
    if current_user.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Staff role required."
        )

    return current_user

async def require_patient(
    current_user: User = Depends(get_current_user)
) -> User:
    if current_user.role != UserRole.PATIENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions. Patient role required."
        )
    return current_user

def require_roles(allowed_roles: list[UserRole]):
    """
    Build a dependency that admits only the given roles.

    Usage:
    @router.put("/{id}/complete")
    async def complete(user: User = Depends(require_roles([UserRole.DENTIST, UserRole.STAFF]))):
        ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions. Required roles: " + ", ".join([role.value for role in allowed_roles])
            )
        return current_user

    return dependency

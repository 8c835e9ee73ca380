"""FastAPI dependencies for authentication and authorization."""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from courseflow.database import get_db
from courseflow.models import User, UserRole

AUTHORS = (UserRole.admin, UserRole.editor, UserRole.teacher)


async def get_current_user(
    request: Request, db: Session = Depends(get_db)
) -> Optional[User]:
    """Get the current authenticated user from session."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    return user


async def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    """Require an authenticated user."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


async def require_admin(user: User = Depends(require_user)) -> User:
    """Require an admin user."""
    if user.role != UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_roles(*roles: UserRole):
    """Build a dependency that admits only the given roles."""

    async def dependency(user: User = Depends(require_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of: {', '.join(role.value for role in roles)}",
            )
        return user

    return dependency


require_author = require_roles(*AUTHORS)
require_maintainer = require_roles(UserRole.admin, UserRole.editor)

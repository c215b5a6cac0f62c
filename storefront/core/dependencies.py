"""FastAPI dependencies."""
from typing import Optional
from fastapi import Depends, Header, HTTPException


async def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None),
) -> Optional[str]:
    """Signed-in customer id, None for guests."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


async def require_user_id(
    user_id: Optional[str] = Depends(get_optional_user_id),
) -> str:
    """Dependency to require a signed-in customer."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id

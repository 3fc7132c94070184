from fastapi import Header, HTTPException, status

from ikoot_ledger.core.settings import settings


async def require_admin_api_key(x_admin_key: str = Header("", alias="X-Admin-Key")) -> None:
    if not settings.admin_api_key:
        return

    if x_admin_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )
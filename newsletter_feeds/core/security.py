from fastapi import Header, HTTPException, status
from newsletter_feeds.core.config import settings

def require_service_token(x_service_token: str | None = Header(default=None, alias="X-Service-Token")) -> None:
    if not x_service_token or x_service_token != settings.service_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid service token")

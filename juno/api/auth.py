"""API key authentication, tenant scoping and permission dependencies."""
import hmac
from typing import Callable, Optional

from fastapi import Header, HTTPException, Depends
from sqlalchemy.orm import Session

from juno.config import settings
from juno.database import get_db
from juno.models import Tenant, UserAccount
from juno.permissions import has_permission


def get_current_user(x_api_key: str = Header(...), db: Session = Depends(get_db)) -> UserAccount:
    """Validate X-API-Key header and return the matching user account."""
    user = db.query(UserAccount).filter(UserAccount.api_key == x_api_key).first()
    if not user:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return user


def get_optional_user(
    x_api_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[UserAccount]:
    if not x_api_key:
        return None
    return get_current_user(x_api_key, db)


def get_current_tenant(
    user: UserAccount = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Tenant:
    """The caller's organization; 404 when the account has none (e.g. after deletion)."""
    if user.tenant_id is None:
        raise HTTPException(404, "No organization found for this account")
    tenant = db.query(Tenant).filter(Tenant.id == user.tenant_id).first()
    if not tenant:
        raise HTTPException(404, "Organization not found")
    return tenant


def require_permission(permission: str) -> Callable[..., UserAccount]:
    """Dependency factory: 403 unless the caller's role grants permission within a tenant."""

    def dependency(user: UserAccount = Depends(get_current_user)) -> UserAccount:
        if user.tenant_id is None or not has_permission(user.role_name, permission):
            raise HTTPException(403, f"Missing permission: {permission}")
        return user

    return dependency


def require_super_admin(user: UserAccount = Depends(get_current_user)) -> UserAccount:
    if user.role_name != "super_admin":
        raise HTTPException(403, "Super admin access required")
    return user


def require_cron(authorization: Optional[str] = Header(None)) -> None:
    """Scheduler endpoints: Authorization: Bearer <CRON_SECRET>."""
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(401, "Unauthorized")

"""Team members and assignable roles."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from juno.api.auth import get_current_tenant, require_permission
from juno.database import get_db
from juno.models import Role, Tenant, UserAccount
from juno.permissions import TENANT_ROLES
from juno.schemas import RoleOut, TeamMemberOut

router = APIRouter()


@router.get("/team", response_model=list[TeamMemberOut])
def list_team(
    tenant: Tenant = Depends(get_current_tenant),
    user: UserAccount = Depends(require_permission("team.read")),
    db: Session = Depends(get_db),
):
    return (
        db.query(UserAccount)
        .filter(UserAccount.tenant_id == tenant.id)
        .order_by(UserAccount.date_of_joining.asc(), UserAccount.id.asc())
        .all()
    )


@router.get("/roles", response_model=list[RoleOut])
def list_roles(db: Session = Depends(get_db)):
    """Roles a tenant member can be invited with."""
    return db.query(Role).filter(Role.role_name.in_(TENANT_ROLES)).order_by(Role.id.asc()).all()

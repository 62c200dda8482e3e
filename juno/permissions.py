"""Role to permission mapping for tenant-scoped endpoints."""

ALL_PERMISSIONS = frozenset({
    "customers.read",
    "customers.create",
    "customers.update",
    "customers.delete",
    "team.read",
    "team.invite",
    "settings.organization",
    "settings.billing",
    "credits.read",
    "credits.use",
    "credits.purchase",
    "documents.upload",
    "channels.read",
    "channels.manage",
})

ROLE_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "manager": frozenset({
        "customers.read",
        "customers.create",
        "customers.update",
        "customers.delete",
        "team.read",
        "team.invite",
        "credits.read",
        "credits.use",
        "channels.read",
    }),
    "agent": frozenset({
        "customers.read",
        "customers.create",
        "customers.update",
        "credits.read",
        "credits.use",
        "channels.read",
    }),
    # Platform role; tenant permissions apply only where the account belongs to a tenant
    "super_admin": ALL_PERMISSIONS,
}

TENANT_ROLES = ("admin", "manager", "agent")


def has_permission(role_name: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role_name, frozenset())

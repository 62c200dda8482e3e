"""API router: every feature router mounted under /api by juno.main."""
from fastapi import APIRouter

from juno.api import (
    billing,
    channels,
    credits,
    cron,
    customers,
    documents,
    invitations,
    organization,
    super_admin,
    team,
    webhooks,
)

router = APIRouter()
router.include_router(organization.router, tags=["organization"])
router.include_router(credits.router, tags=["credits"])
router.include_router(billing.router, tags=["billing"])
router.include_router(webhooks.router, tags=["webhooks"])
router.include_router(invitations.router, tags=["team"])
router.include_router(team.router, tags=["team"])
router.include_router(customers.router, tags=["customers"])
router.include_router(channels.router, tags=["channels"])
router.include_router(documents.router, tags=["documents"])
router.include_router(super_admin.router, tags=["super-admin"])
router.include_router(cron.router, tags=["cron"])

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from salesdesk.activities.api import router as activities_router
from salesdesk.attachments.api import router as attachments_router
from salesdesk.audit_logs.api import router as audit_logs_router
from salesdesk.auth.api import router as auth_router
from salesdesk.branches.api import router as branches_router
from salesdesk.core.auth import get_current_actor
from salesdesk.core.config import get_settings
from salesdesk.customers.api import router as customers_router
from salesdesk.daily_reports.api import router as daily_reports_router
from salesdesk.deals.api import router as deals_router
from salesdesk.follow_ups.api import router as follow_ups_router
from salesdesk.leaderboard.api import router as leaderboard_router
from salesdesk.leads.api import router as leads_router
from salesdesk.leads.api import transfer_requests_router
from salesdesk.metrics import generate_metrics_payload, metrics_content_type
from salesdesk.notes.api import router as notes_router
from salesdesk.payment_requests.api import router as payment_requests_router
from salesdesk.payments.api import router as payments_router
from salesdesk.security.context import Actor
from salesdesk.security.scope import deny
from salesdesk.storage.api import router as storage_router
from salesdesk.targets.api import router as targets_router
from salesdesk.users.api import router as users_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(branches_router)
router.include_router(leads_router)
router.include_router(transfer_requests_router)
router.include_router(customers_router)
router.include_router(deals_router)
router.include_router(notes_router)
router.include_router(follow_ups_router)
router.include_router(activities_router)
router.include_router(daily_reports_router)
router.include_router(targets_router)
router.include_router(leaderboard_router)
router.include_router(payments_router)
router.include_router(payment_requests_router)
router.include_router(storage_router)
router.include_router(attachments_router)
router.include_router(audit_logs_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


def require_metrics_enabled() -> None:
    if not get_settings().metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")


@router.get("/metrics", tags=["system"], dependencies=[Depends(require_metrics_enabled)])
def metrics(actor: Actor = Depends(get_current_actor)) -> Response:
    if not actor.is_super_admin:
        deny("metrics", "role", "requires role: SUPER_ADMIN")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())

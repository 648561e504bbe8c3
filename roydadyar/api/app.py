"""HTTP API: manual dispatch trigger, subscription flow and admin settings."""

import hmac
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from roydadyar.billing.settlement import SubscriptionSettlement
from roydadyar.billing.zarinpal import ZarinpalClient
from roydadyar.channels.base import NotificationData
from roydadyar.channels.registry import build_channels, send_notification
from roydadyar.config import Config
from roydadyar.db.migrations import run_migrations
from roydadyar.db.models import CycleReport
from roydadyar.db.repository import Repository
from roydadyar.engine.scheduler import ReminderScheduler
from roydadyar.engine.tier_gate import is_channel_allowed
from roydadyar.settings_store import SettingsStore
from roydadyar.utils.constants import EMAIL, PLANS
from roydadyar.utils.error_handler import register_error_handlers
from roydadyar.utils.exceptions import ChannelNotAllowed, NotFound
from roydadyar.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class UpgradeRequest(BaseModel):
    plan_type: str


class TestNotificationRequest(BaseModel):
    method: str = EMAIL
    event_title: str = "Reminder system test"


class SettingsUpdate(BaseModel):
    values: Dict[str, str]


# Dependencies


def get_repo(request: Request) -> Repository:
    return request.app.state.repo


def get_settings(request: Request) -> SettingsStore:
    return request.app.state.settings


def get_scheduler(request: Request) -> ReminderScheduler:
    return request.app.state.scheduler


def get_settlement(request: Request) -> SubscriptionSettlement:
    return request.app.state.settlement


def current_user_id(x_user_id: int = Header(...)) -> int:
    """Id of the caller, set by the authentication layer in front of the API."""
    return x_user_id


def require_admin(request: Request, x_admin_token: str = Header("")) -> None:
    """Reject callers without the admin token."""
    expected = request.app.state.admin_token
    if not expected or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(status_code=403, detail="Admin access required")


# Serializers


def report_to_dict(report: CycleReport) -> dict:
    """Counts plus per-reminder outcomes grouped by status."""
    grouped: Dict[str, list] = {"sent": [], "failed": [], "skipped": []}
    for outcome in report.outcomes:
        grouped[outcome.status].append(asdict(outcome))

    return jsonable_encoder(
        {
            "started_at": report.started_at,
            "finished_at": report.finished_at,
            "total_checked": report.total_checked,
            "sent": report.sent,
            "failed": report.failed,
            "skipped": report.skipped,
            "sent_notifications": grouped["sent"],
            "failed_notifications": grouped["failed"],
            "skipped_notifications": grouped["skipped"],
        }
    )


def create_app(
    db_path: Path | None = None,
    admin_token: str | None = None,
    timezone: str | None = None,
    daily_hour: int | None = None,
    scheduler_enabled: bool | None = None,
    settings: SettingsStore | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """Build the application. Arguments left as None come from Config."""
    db_path = db_path or Config.DATABASE_PATH
    timezone = timezone or Config.SCHEDULER_TIMEZONE
    daily_hour = Config.DAILY_HOUR if daily_hour is None else daily_hour
    scheduler_enabled = Config.SCHEDULER_ENABLED if scheduler_enabled is None else scheduler_enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Initialize database
        await run_migrations(db_path)
        repo = Repository(db_path)
        await repo.connect()

        store = settings or SettingsStore.from_env()
        await store.load(repo)

        channels = build_channels(store)
        scheduler = ReminderScheduler(repo, channels, timezone, daily_hour, clock)

        app.state.repo = repo
        app.state.settings = store
        app.state.channels = channels
        app.state.scheduler = scheduler
        app.state.settlement = SubscriptionSettlement(repo, ZarinpalClient(store), clock)

        if scheduler_enabled:
            scheduler.start()

        logger.info("Roydad Yar initialized successfully")
        try:
            yield
        finally:
            scheduler.stop()
            await repo.close()
            logger.info("Roydad Yar shut down")

    app = FastAPI(title="Roydad Yar", lifespan=lifespan)
    app.state.admin_token = Config.ADMIN_TOKEN if admin_token is None else admin_token
    register_error_handlers(app)

    # Notifications

    @app.post("/api/notifications/trigger-check", dependencies=[Depends(require_admin)])
    async def trigger_check(scheduler: ReminderScheduler = Depends(get_scheduler)):
        """Run one dispatch cycle now and report what happened."""
        report = await scheduler.run_once()
        return {
            "success": True,
            "message": "Notification check completed",
            "data": report_to_dict(report),
        }

    @app.get("/api/notifications/status", dependencies=[Depends(require_admin)])
    async def scheduler_status(scheduler: ReminderScheduler = Depends(get_scheduler)):
        return {
            "success": True,
            "data": {
                "started": scheduler.is_started,
                "running": scheduler.is_running,
                "timezone": scheduler.timezone,
                "daily_hour": scheduler.daily_hour,
                "last_error": scheduler.last_error,
                "last_report": report_to_dict(scheduler.last_report)
                if scheduler.last_report
                else None,
            },
        }

    @app.post("/api/notifications/test")
    async def test_notification(
        body: TestNotificationRequest,
        request: Request,
        user_id: int = Depends(current_user_id),
        repo: Repository = Depends(get_repo),
    ):
        """Send a sample notification to the caller through one channel."""
        user = await repo.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        if not is_channel_allowed(user.subscription_type, body.method):
            raise ChannelNotAllowed(f"{body.method} is not available on your plan")

        data = NotificationData(
            to=user.email,
            event_title=body.event_title,
            event_date=utc_now(),
            days_until=1,
            user_full_name=user.full_name,
        )
        success = await send_notification(request.app.state.channels, body.method, data, user.phone)
        if not success:
            raise HTTPException(status_code=502, detail="Failed to send test notification")

        return {"success": True, "message": f"Test notification sent via {body.method}"}

    # Subscriptions

    @app.get("/api/subscriptions/plans")
    async def list_plans():
        return {"success": True, "data": {"plans": jsonable_encoder(PLANS)}}

    @app.get("/api/subscriptions/current")
    async def current_subscription(
        user_id: int = Depends(current_user_id),
        settlement: SubscriptionSettlement = Depends(get_settlement),
    ):
        tier, subscription = await settlement.current(user_id)
        return {
            "success": True,
            "data": {
                "current_type": tier,
                "subscription": jsonable_encoder(subscription) if subscription else None,
                "reminder_methods": list(PLANS[tier].reminder_methods),
            },
        }

    @app.post("/api/subscriptions/upgrade")
    async def upgrade(
        body: UpgradeRequest,
        user_id: int = Depends(current_user_id),
        settlement: SubscriptionSettlement = Depends(get_settlement),
        store: SettingsStore = Depends(get_settings),
    ):
        result = await settlement.request_upgrade(user_id, body.plan_type, store.app_url)
        return {
            "success": True,
            "message": "Payment request created",
            "data": jsonable_encoder(result),
        }

    @app.get("/api/subscriptions/verify-payment")
    async def verify_payment(
        authority: str | None = Query(None, alias="Authority"),
        status: str | None = Query(None, alias="Status"),
        subscription: str | None = Query(None),
        settlement: SubscriptionSettlement = Depends(get_settlement),
        store: SettingsStore = Depends(get_settings),
    ):
        """Payment provider callback; always answers with a redirect."""
        try:
            outcome = await settlement.handle_callback(authority, status, subscription)
            target = outcome.redirect_url(store.app_url)
        except Exception as e:
            logger.error(f"Payment verification handler error: {e}")
            target = f"{store.app_url}/dashboard?payment=failed&reason=server_error"
        return RedirectResponse(target, status_code=302)

    @app.post("/api/subscriptions/cancel")
    async def cancel(
        user_id: int = Depends(current_user_id),
        settlement: SubscriptionSettlement = Depends(get_settlement),
    ):
        await settlement.cancel(user_id)
        return {"success": True, "message": "Subscription cancelled"}

    # Admin settings

    @app.get("/api/admin/settings", dependencies=[Depends(require_admin)])
    async def read_settings(store: SettingsStore = Depends(get_settings)):
        return {"success": True, "data": store.masked()}

    @app.put("/api/admin/settings", dependencies=[Depends(require_admin)])
    async def write_settings(
        body: SettingsUpdate,
        store: SettingsStore = Depends(get_settings),
        repo: Repository = Depends(get_repo),
    ):
        try:
            changed = await store.update(repo, body.values)
        except KeyError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "message": "Settings saved", "data": {"changed": changed}}

    return app

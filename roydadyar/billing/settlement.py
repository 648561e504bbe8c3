"""Subscription settlement: pending -> active or discarded.

A subscription row is created as pending when the user asks to upgrade and
only becomes active after the payment provider confirms the payment. Every
path that does not end in a confirmed payment deletes the pending row.
Activation is also the only place a user's tier goes up; cancelling drops it
back to FREE.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from urllib.parse import urlencode

from roydadyar.billing.zarinpal import ZarinpalClient, payment_status_message
from roydadyar.db.models import Subscription
from roydadyar.db.repository import Repository
from roydadyar.utils.constants import (
    ACCEPTED_VERIFY_CODES,
    APP_NAME,
    CALLBACK_STATUS_OK,
    PAID_TIERS,
    PLANS,
    SUBSCRIPTION_MONTHS,
)
from roydadyar.utils.exceptions import (
    Conflict,
    InvalidPlan,
    NotFound,
    PaymentGatewayError,
    PaymentInitiationError,
)
from roydadyar.utils.time_utils import add_months, utc_now

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/subscriptions/verify-payment"


@dataclass
class UpgradeResult:
    """Where to send the payer for a new pending subscription."""

    subscription_id: int
    amount: int
    authority: str
    payment_url: str


@dataclass
class CallbackOutcome:
    """How a payment callback ended."""

    outcome: str  # success, cancelled or failed
    plan: str | None = None
    reason: str | None = None

    def redirect_url(self, app_url: str) -> str:
        """Dashboard URL that tells the user what happened."""
        params = {"payment": self.outcome}
        if self.plan:
            params["plan"] = self.plan.lower()
        if self.reason:
            params["reason"] = self.reason
        return f"{app_url}/dashboard?{urlencode(params)}"


class SubscriptionSettlement:
    """Drives the upgrade, payment callback and cancel operations."""

    def __init__(
        self,
        repo: Repository,
        gateway: ZarinpalClient,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repo = repo
        self.gateway = gateway
        self.clock = clock

    async def request_upgrade(self, user_id: int, plan: str, base_url: str) -> UpgradeResult:
        """Create a pending subscription and obtain a payment URL for it.

        Raises:
            InvalidPlan: plan is not PREMIUM or BUSINESS
            NotFound: the user does not exist
            Conflict: the user already has a running subscription
            PaymentInitiationError: the provider could not start the payment
        """
        if plan not in PAID_TIERS:
            raise InvalidPlan(f"Invalid plan type: {plan}")

        user = await self.repo.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        now = self.clock()
        existing = await self.repo.get_active_subscription(user_id, ends_after=now)
        if existing is not None:
            raise Conflict("You already have an active subscription")

        amount = PLANS[plan].price
        subscription = await self.repo.create_subscription(
            Subscription(
                user_id=user_id,
                type=plan,  # type: ignore
                amount=amount,
                end_date=add_months(now, SUBSCRIPTION_MONTHS),
                is_active=False,
            )
        )
        logger.info(f"Created pending {plan} subscription {subscription.id} for user {user_id}")

        callback_url = f"{base_url.rstrip('/')}{CALLBACK_PATH}?subscription={subscription.id}"

        try:
            payment = await self.gateway.request_payment(
                amount=amount,
                description=f"{PLANS[plan].name} plan - {APP_NAME}",
                callback_url=callback_url,
                email=user.email,
                mobile=user.phone,
            )
        except PaymentGatewayError as e:
            logger.error(f"Payment request failed for subscription {subscription.id}: {e}")
            await self.repo.delete_subscription(subscription.id)  # type: ignore
            raise PaymentInitiationError(
                "Could not connect to the payment gateway, please try again"
            ) from e

        await self.repo.set_payment_id(subscription.id, payment.authority)  # type: ignore

        return UpgradeResult(
            subscription_id=subscription.id,  # type: ignore
            amount=amount,
            authority=payment.authority,
            payment_url=payment.url,
        )

    async def handle_callback(
        self,
        authority: str | None,
        status: str | None,
        subscription_id: str | int | None,
    ) -> CallbackOutcome:
        """Settle a pending subscription from the provider's redirect.

        Only pending rows are settled, and only with the authority stored when
        the payment was requested. Active and cancelled rows are never changed.
        Never raises for provider-side problems; the outcome says what the
        user should be shown.
        """
        if not authority or not subscription_id:
            return CallbackOutcome("failed", reason="invalid_params")

        try:
            sub_id = int(subscription_id)
        except (TypeError, ValueError):
            return CallbackOutcome("failed", reason="invalid_params")

        subscription = await self.repo.get_subscription(sub_id)
        if subscription is None:
            return CallbackOutcome("failed", reason="subscription_not_found")

        if subscription.is_active:
            # Provider delivered the same callback twice
            logger.info(f"Subscription {sub_id} already active, ignoring repeated callback")
            return CallbackOutcome("success", plan=subscription.type)

        if not subscription.is_pending:
            # Activated once and cancelled since; the row is billing history
            logger.warning(f"Callback for settled subscription {sub_id} ignored")
            return CallbackOutcome("failed", reason="already_settled")

        stored_authority = subscription.payment_id
        if not stored_authority or authority != stored_authority:
            await self.repo.delete_subscription(sub_id)
            logger.warning(f"Authority mismatch on callback for subscription {sub_id}")
            return CallbackOutcome("failed", reason="authority_mismatch")

        if status != CALLBACK_STATUS_OK:
            await self.repo.delete_subscription(sub_id)
            logger.info(f"Payment cancelled for subscription {sub_id}")
            return CallbackOutcome("cancelled")

        try:
            verification = await self.gateway.verify_payment(
                stored_authority, subscription.amount
            )
        except PaymentGatewayError as e:
            logger.error(f"Payment verification error for subscription {sub_id}: {e}")
            await self.repo.delete_subscription(sub_id)
            return CallbackOutcome("failed", reason="verification_error")

        if verification.status in ACCEPTED_VERIFY_CODES:
            activated = await self.repo.activate_subscription(
                subscription,
                payment_id=verification.ref_id or stored_authority,
                activated_at=self.clock(),
            )
            if not activated:
                current = await self.repo.get_subscription(sub_id)
                logger.warning(f"Subscription {sub_id} was settled by another callback")
                if current is not None and current.is_active:
                    return CallbackOutcome("success", plan=current.type)
                return CallbackOutcome("failed", reason="already_settled")
            logger.info(
                f"Subscription {sub_id} activated, user {subscription.user_id} "
                f"is now {subscription.type}"
            )
            return CallbackOutcome("success", plan=subscription.type)

        await self.repo.delete_subscription(sub_id)
        reason = payment_status_message(verification.status)
        logger.warning(f"Payment verification failed for subscription {sub_id}: {reason}")
        return CallbackOutcome("failed", reason=reason)

    async def cancel(self, user_id: int) -> Subscription:
        """Deactivate the user's subscription and return them to FREE.

        The row and its end date are kept for billing history.

        Raises:
            NotFound: no active subscription
        """
        subscription = await self.repo.get_active_subscription(user_id)
        if subscription is None:
            raise NotFound("No active subscription found")

        await self.repo.deactivate_subscription(subscription)
        subscription.is_active = False
        logger.info(f"Subscription {subscription.id} cancelled for user {user_id}")
        return subscription

    async def current(self, user_id: int) -> tuple[str, Subscription | None]:
        """The user's enforced tier and the subscription granting it."""
        user = await self.repo.get_user(user_id)
        if user is None:
            raise NotFound("User not found")

        subscription = await self.repo.get_active_subscription(user_id)
        return user.subscription_type, subscription

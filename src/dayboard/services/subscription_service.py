"""
Subscription state machine.

Status (none -> trialing -> active -> canceled, plus the provider's past_due
and incomplete) and plan tier (free / pro / premium) are tracked
independently. Every transition goes through :class:`SubscriptionService`,
which is built per request with an injected billing client and database
session.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dayboard.core.config import settings
from dayboard.core.exceptions import (
    InvalidInput,
    InvalidPlan,
    NoActiveSubscription,
    NoEmailOnFile,
    NotEligible,
    PartialFailure,
)
from dayboard.crud.crud_subscription import subscription as crud_subscription
from dayboard.models.subscription import UserSubscription
from dayboard.schemas import (
    CheckoutSession,
    Identity,
    PlanChangeReason,
    PlanType,
    ProviderSubscription,
    Subscription,
    SubscriptionResponse,
    SubscriptionStatus,
)
from dayboard.schemas.enums import PAID_PLANS
from dayboard.services.billing import BillingClient
from dayboard.utils.dates import add_months, as_utc, utcnow

logger = logging.getLogger(__name__)

BONUS_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)
FREE_STATUSES = (SubscriptionStatus.NONE, SubscriptionStatus.CANCELED, SubscriptionStatus.PAST_DUE)

STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete": SubscriptionStatus.INCOMPLETE,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def is_eligible_for_premium_bonus(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """Loyalty bonus rule: pro, active or trialing for at least three
    calendar months without interruption, bonus never claimed.

    Derived from the stored timestamps on every call; the provider may move
    trial/active windows at any time.
    """
    if subscription is None:
        return False
    if subscription.plan_type != PlanType.PRO:
        return False
    if subscription.status not in BONUS_STATUSES:
        return False
    if subscription.premium_bonus_claimed:
        return False
    started = as_utc(subscription.pro_started_at)
    if started is None:
        return False
    now = as_utc(now) if now else utcnow()
    return now >= add_months(started, settings.PREMIUM_BONUS_MIN_PRO_MONTHS)


def effective_plan(subscription: Subscription) -> PlanType:
    """Plan used for feature access: free unless the subscription is live."""
    if subscription.status in FREE_STATUSES:
        return PlanType.FREE
    return subscription.plan_type


def can_start_pro_trial(subscription: Optional[Subscription]) -> bool:
    """A pro trial is granted once: never to a user who already held one or
    who already pays for a plan."""
    if subscription is None:
        return True
    if subscription.pro_trial_used:
        return False
    return subscription.plan_type == PlanType.FREE


def parse_plan(plan: str) -> PlanType:
    """Validate a paid plan name coming from a request."""
    try:
        parsed = PlanType(plan)
    except ValueError:
        raise InvalidPlan()
    if parsed not in PAID_PLANS:
        raise InvalidPlan()
    return parsed


class SubscriptionService:
    """Billing state transitions of one user's subscription."""

    def __init__(self, db: AsyncSession, billing: BillingClient):
        self.db = db
        self.billing = billing
        self.logger = logging.getLogger(__name__)

    def price_id_for(self, plan: PlanType) -> str:
        return {
            PlanType.PRO: settings.STRIPE_PRO_PRICE_ID,
            PlanType.PREMIUM: settings.STRIPE_PREMIUM_PRICE_ID,
        }[plan]

    def plan_for_price(self, price_id: Optional[str]) -> PlanType:
        if price_id and price_id == settings.STRIPE_PREMIUM_PRICE_ID:
            return PlanType.PREMIUM
        return PlanType.PRO

    async def load(self, user_id: str) -> Optional[Subscription]:
        row = await crud_subscription.get_for_user(self.db, user_id=user_id)
        return Subscription.model_validate(row) if row else None

    async def get_subscription(self, user_id: str) -> SubscriptionResponse:
        """Current record (or the implicit free default) and bonus eligibility."""
        record = await self.load(user_id)
        return SubscriptionResponse(
            subscription=record or Subscription.default_for(user_id),
            eligible_for_premium_bonus=is_eligible_for_premium_bonus(record),
        )

    async def start_checkout(self, identity: Identity, plan: str) -> CheckoutSession:
        """Open a checkout session for `plan`, creating the provider customer
        on first use. Pro gets a trial only the first time."""
        target = parse_plan(plan)
        if not identity.email:
            raise NoEmailOnFile()

        record = await self.load(identity.user_id)
        customer_id = record.stripe_customer_id if record else None
        if not customer_id:
            customer = self.billing.create_customer(identity.email, identity.user_id, identity.name)
            customer_id = customer.id
            await self._persist(
                identity.user_id,
                "start_checkout",
                {"stripe_customer_id": customer_id},
                provider_ids={"customer_id": customer_id},
            )

        trial_days = None
        if target == PlanType.PRO and can_start_pro_trial(record):
            trial_days = settings.PRO_TRIAL_DAYS

        session = self.billing.create_checkout_session(
            customer_id, self.price_id_for(target), identity.user_id, trial_days
        )
        self.logger.info(
            f"Checkout session {session.id} opened for user {identity.user_id}: "
            f"{target.value}, trial days {trial_days or 0}"
        )
        return session

    async def claim_premium_bonus(self, user_id: str) -> Subscription:
        """Upgrade a loyal pro subscriber to premium with a free trial window."""
        record = await self.load(user_id)
        if not is_eligible_for_premium_bonus(record):
            raise NotEligible()
        if not record.stripe_subscription_id:
            raise NoActiveSubscription()

        subscription_id = record.stripe_subscription_id
        premium_price = self.price_id_for(PlanType.PREMIUM)
        trial_end = utcnow().replace(microsecond=0) + timedelta(days=settings.PREMIUM_BONUS_TRIAL_DAYS)

        provider = self.billing.retrieve_subscription(subscription_id)
        self.billing.update_subscription(
            subscription_id,
            item_id=provider.item_id,
            price_id=premium_price,
            trial_end=int(trial_end.timestamp()),
            proration_behavior="none",
        )

        provider_ids = {"subscription_id": subscription_id, "customer_id": record.stripe_customer_id}
        try:
            won = await crud_subscription.mark_premium_bonus_claimed(
                self.db,
                user_id=user_id,
                values={
                    "plan_type": PlanType.PREMIUM.value,
                    "stripe_price_id": premium_price,
                    "status": SubscriptionStatus.TRIALING.value,
                    "trial_end": trial_end,
                    "pro_started_at": None,
                    "updated_at": utcnow(),
                },
            )
            if not won:
                await self.db.rollback()
                self.logger.warning(
                    f"Premium bonus for user {user_id} was claimed concurrently; "
                    f"provider subscription {subscription_id} already updated"
                )
                raise NotEligible()
            await crud_subscription.log_plan_change(
                self.db,
                user_id=user_id,
                from_plan=PlanType.PRO.value,
                to_plan=PlanType.PREMIUM.value,
                reason=PlanChangeReason.LOYALTY_BONUS_CLAIMED.value,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PartialFailure(user_id=user_id, operation="claim_premium_bonus", provider_ids=provider_ids) from e

        self.logger.info(f"Premium bonus claimed by user {user_id}")
        return await self.load(user_id)

    async def open_billing_portal(self, user_id: str) -> str:
        """URL of the provider-hosted subscription management page."""
        record = await self.load(user_id)
        if not record or not record.stripe_customer_id:
            raise NoActiveSubscription()
        return self.billing.create_portal_session(record.stripe_customer_id).url

    async def cancel_subscription(self, user_id: str) -> Subscription:
        """Cancel at the end of the current period."""
        return await self._set_cancel_at_period_end(user_id, True)

    async def reactivate_subscription(self, user_id: str) -> Subscription:
        """Undo a pending cancellation."""
        return await self._set_cancel_at_period_end(user_id, False)

    async def _set_cancel_at_period_end(self, user_id: str, cancel: bool) -> Subscription:
        record = await self._require_provider_subscription(user_id)
        operation = "cancel_subscription" if cancel else "reactivate_subscription"
        provider = self.billing.update_subscription(record.stripe_subscription_id, cancel_at_period_end=cancel)
        await self._persist(
            user_id,
            operation,
            {
                "cancel_at_period_end": cancel,
                "current_period_end": provider.current_period_end or record.current_period_end,
            },
            provider_ids={"subscription_id": record.stripe_subscription_id},
        )
        self.logger.info(f"{operation} for user {user_id}")
        return await self.load(user_id)

    async def change_plan(self, user_id: str, plan: str) -> Subscription:
        """Swap the paid plan, invoicing the difference immediately."""
        target = parse_plan(plan)
        record = await self._require_provider_subscription(user_id)
        if record.plan_type == target:
            raise InvalidInput(f"Already on the {target.value} plan")

        price_id = self.price_id_for(target)
        provider = self.billing.retrieve_subscription(record.stripe_subscription_id)
        self.billing.update_subscription(
            record.stripe_subscription_id,
            item_id=provider.item_id,
            price_id=price_id,
            proration_behavior="always_invoice",
        )
        values = {"plan_type": target.value, "stripe_price_id": price_id}
        values.update(self._pro_period_fields(record, target, record.status))
        await self._persist(
            user_id,
            "change_plan",
            values,
            provider_ids={"subscription_id": record.stripe_subscription_id},
            change=(record.plan_type, target, PlanChangeReason.PLAN_CHANGED),
        )
        return await self.load(user_id)

    # Transitions emitted by the billing provider (webhooks)

    async def apply_provider_subscription(self, provider: ProviderSubscription) -> Optional[Subscription]:
        """Mirror a created/updated provider subscription locally."""
        user_id = provider.metadata.get("user_id")
        if not user_id:
            self.logger.error(f"Missing user_id in metadata of subscription {provider.id}")
            return None

        record = await self.load(user_id)
        old_plan = record.plan_type if record else PlanType.FREE
        plan = self.plan_for_price(provider.price_id)
        status = STATUS_MAP.get(provider.status, SubscriptionStatus.INCOMPLETE)

        values = {
            "plan_type": plan.value,
            "status": status.value,
            "stripe_customer_id": provider.customer_id,
            "stripe_subscription_id": provider.id,
            "stripe_price_id": provider.price_id,
            "trial_end": provider.trial_end,
            "current_period_start": provider.current_period_start,
            "current_period_end": provider.current_period_end,
            "cancel_at_period_end": provider.cancel_at_period_end,
        }
        values.update(self._pro_period_fields(record, plan, status))
        if plan == PlanType.PRO and status == SubscriptionStatus.TRIALING:
            values["pro_trial_used"] = True

        change = None
        if old_plan != plan:
            reason = PlanChangeReason.TRIAL_STARTED if provider.trial_end else PlanChangeReason.SUBSCRIPTION_STARTED
            change = (old_plan, plan, reason)
        await self._persist(user_id, "apply_provider_subscription", values, provider_ids={"subscription_id": provider.id}, change=change)
        self.logger.info(f"Subscription updated for user {user_id}: {plan.value} ({status.value})")
        return await self.load(user_id)

    async def apply_provider_deletion(self, provider: ProviderSubscription) -> Optional[Subscription]:
        """The provider subscription ended: back to free."""
        user_id = provider.metadata.get("user_id")
        if not user_id:
            self.logger.error(f"Missing user_id in metadata of subscription {provider.id}")
            return None

        record = await self.load(user_id)
        old_plan = record.plan_type if record else PlanType.FREE
        await self._persist(
            user_id,
            "apply_provider_deletion",
            {
                "plan_type": PlanType.FREE.value,
                "status": SubscriptionStatus.CANCELED.value,
                "stripe_subscription_id": None,
                "stripe_price_id": None,
                "pro_started_at": None,
                "cancel_at_period_end": False,
            },
            provider_ids={"subscription_id": provider.id},
            change=(old_plan, PlanType.FREE, PlanChangeReason.SUBSCRIPTION_CANCELED),
        )
        self.logger.info(f"Subscription canceled for user {user_id}")
        return await self.load(user_id)

    async def record_payment(self, provider: ProviderSubscription) -> Optional[Subscription]:
        """Count successful pro invoices."""
        user_id = provider.metadata.get("user_id")
        if not user_id or provider.price_id != settings.STRIPE_PRO_PRICE_ID:
            return None
        row = await crud_subscription.get_for_user(self.db, user_id=user_id)
        if row is None:
            return None
        count = (row.pro_payment_count or 0) + 1
        await self._persist(user_id, "record_payment", {"pro_payment_count": count}, provider_ids={"subscription_id": provider.id})
        self.logger.info(f"Pro payment count for user {user_id}: {count}")
        return await self.load(user_id)

    async def record_payment_failure(self, provider: ProviderSubscription) -> Optional[Subscription]:
        user_id = provider.metadata.get("user_id")
        if not user_id:
            return None
        if await crud_subscription.get_for_user(self.db, user_id=user_id) is None:
            return None
        await self._persist(
            user_id,
            "record_payment_failure",
            {"status": SubscriptionStatus.PAST_DUE.value},
            provider_ids={"subscription_id": provider.id},
        )
        self.logger.warning(f"Payment failed for user {user_id}")
        return await self.load(user_id)

    async def grant_plan(self, user_id: str, plan: PlanType) -> Subscription:
        """Put a user on `plan` without going through the provider."""
        record = await self.load(user_id)
        old_plan = record.plan_type if record else PlanType.FREE
        values = {"plan_type": plan.value, "status": SubscriptionStatus.ACTIVE.value}
        values.update(self._pro_period_fields(record, plan, SubscriptionStatus.ACTIVE))
        await self._persist(user_id, "grant_plan", values, change=(old_plan, plan, PlanChangeReason.MANUAL_GRANT))
        return await self.load(user_id)

    # Helpers

    async def _require_provider_subscription(self, user_id: str) -> Subscription:
        record = await self.load(user_id)
        if not record or not record.stripe_subscription_id:
            raise NoActiveSubscription()
        return record

    def _pro_period_fields(self, record: Optional[Subscription], plan: PlanType, status: SubscriptionStatus) -> dict:
        """Track the start of the current continuous pro period."""
        on_pro = plan == PlanType.PRO and status in BONUS_STATUSES
        was_on_pro = (
            record is not None
            and record.plan_type == PlanType.PRO
            and record.status in BONUS_STATUSES
            and record.pro_started_at is not None
        )
        if on_pro and not was_on_pro:
            return {"pro_started_at": utcnow()}
        if not on_pro:
            return {"pro_started_at": None}
        return {}

    async def _persist(
        self,
        user_id: str,
        operation: str,
        values: dict,
        provider_ids: Optional[dict] = None,
        change: Optional[tuple] = None,
    ) -> UserSubscription:
        """Upsert the subscription row and, if given, log the plan change in
        the same transaction.

        Provider writes happen before this call; a storage failure here is
        therefore a partial failure.
        """
        try:
            row = await crud_subscription.upsert(self.db, user_id=user_id, values=values)
            if change is not None:
                from_plan, to_plan, reason = change
                await crud_subscription.log_plan_change(
                    self.db,
                    user_id=user_id,
                    from_plan=PlanType(from_plan).value,
                    to_plan=PlanType(to_plan).value,
                    reason=PlanChangeReason(reason).value,
                )
            await self.db.commit()
            return row
        except SQLAlchemyError as e:
            await self.db.rollback()
            if provider_ids:
                raise PartialFailure(user_id=user_id, operation=operation, provider_ids=provider_ids) from e
            raise

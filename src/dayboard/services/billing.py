"""
Billing provider client (Stripe).

Exposes only the operations the subscription state machine needs and
normalizes Stripe objects into typed records, so that callers (and test
doubles) never touch the stripe library directly.
"""
import json
import logging
from typing import Any, Optional, Protocol

import stripe

from dayboard.core.exceptions import ExternalServiceFailure, InvalidInput
from dayboard.schemas.subscription import CheckoutSession, PortalSession, ProviderCustomer, ProviderSubscription
from dayboard.utils.dates import from_timestamp

logger = logging.getLogger(__name__)


class BillingClient(Protocol):
    def create_customer(self, email: str, user_id: str, name: Optional[str] = None) -> ProviderCustomer: ...

    def create_checkout_session(
        self, customer_id: str, price_id: str, user_id: str, trial_days: Optional[int] = None
    ) -> CheckoutSession: ...

    def create_portal_session(self, customer_id: str) -> PortalSession: ...

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription: ...

    def update_subscription(
        self,
        subscription_id: str,
        *,
        price_id: Optional[str] = None,
        item_id: Optional[str] = None,
        trial_end: Optional[int] = None,
        proration_behavior: Optional[str] = None,
        cancel_at_period_end: Optional[bool] = None,
    ) -> ProviderSubscription: ...

    def construct_event(self, payload: bytes, signature: str) -> dict: ...


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def to_provider_subscription(obj: Any) -> ProviderSubscription:
    """Normalize a Stripe subscription (object or webhook payload dict)."""
    items = _get(_get(obj, "items", {}), "data", []) or []
    first_item = items[0] if items else None
    customer = _get(obj, "customer")
    if not isinstance(customer, str):
        customer = _get(customer, "id")
    # Newer API versions moved the billing period onto the subscription items.
    period_start = _get(obj, "current_period_start") or _get(first_item, "current_period_start")
    period_end = _get(obj, "current_period_end") or _get(first_item, "current_period_end")
    metadata = _get(obj, "metadata", {}) or {}
    return ProviderSubscription(
        id=_get(obj, "id"),
        customer_id=customer,
        status=_get(obj, "status", "incomplete"),
        item_id=_get(first_item, "id"),
        price_id=_get(_get(first_item, "price"), "id"),
        trial_end=from_timestamp(_get(obj, "trial_end")),
        current_period_start=from_timestamp(period_start),
        current_period_end=from_timestamp(period_end),
        cancel_at_period_end=bool(_get(obj, "cancel_at_period_end", False)),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
    )


class StripeBillingClient:
    """Stripe implementation of :class:`BillingClient`.

    The API key is passed on every request instead of being set globally on
    the stripe module.
    """

    def __init__(self, api_key: str, app_url: str, webhook_secret: str = ""):
        self.api_key = api_key
        self.app_url = app_url.rstrip("/")
        self.webhook_secret = webhook_secret
        self.logger = logging.getLogger(__name__)

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe {operation} failed: {e}")
            raise ExternalServiceFailure() from e

    def create_customer(self, email: str, user_id: str, name: Optional[str] = None) -> ProviderCustomer:
        """Create a Stripe customer for a user."""
        params: dict[str, Any] = {"email": email, "metadata": {"user_id": user_id}}
        if name:
            params["name"] = name
        customer = self._call("customer create", stripe.Customer.create, **params)
        self.logger.info(f"Created Stripe customer {customer['id']} for user {user_id}")
        return ProviderCustomer(id=customer["id"], email=email)

    def create_checkout_session(
        self, customer_id: str, price_id: str, user_id: str, trial_days: Optional[int] = None
    ) -> CheckoutSession:
        """Create a subscription-mode checkout session."""
        subscription_data: dict[str, Any] = {"metadata": {"user_id": user_id}}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days
        session = self._call(
            "checkout session create",
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{self.app_url}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.app_url}/pricing?canceled=true",
            metadata={"user_id": user_id},
            subscription_data=subscription_data,
        )
        return CheckoutSession(id=session["id"], url=_get(session, "url"))

    def create_portal_session(self, customer_id: str) -> PortalSession:
        """Create a customer portal session to manage the subscription."""
        session = self._call(
            "portal session create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=f"{self.app_url}/dashboard",
        )
        return PortalSession(id=session["id"], url=session["url"])

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        subscription = self._call("subscription retrieve", stripe.Subscription.retrieve, subscription_id)
        return to_provider_subscription(subscription)

    def update_subscription(
        self,
        subscription_id: str,
        *,
        price_id: Optional[str] = None,
        item_id: Optional[str] = None,
        trial_end: Optional[int] = None,
        proration_behavior: Optional[str] = None,
        cancel_at_period_end: Optional[bool] = None,
    ) -> ProviderSubscription:
        """Update a subscription. Swapping the price needs the item to swap."""
        params: dict[str, Any] = {}
        if price_id is not None:
            if item_id is None:
                raise InvalidInput("item_id is required to change the price of a subscription")
            params["items"] = [{"id": item_id, "price": price_id}]
        if trial_end is not None:
            params["trial_end"] = trial_end
        if proration_behavior is not None:
            params["proration_behavior"] = proration_behavior
        if cancel_at_period_end is not None:
            params["cancel_at_period_end"] = cancel_at_period_end
        subscription = self._call("subscription update", stripe.Subscription.modify, subscription_id, **params)
        return to_provider_subscription(subscription)

    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verify a webhook signature and return the event as plain data.

        Raises ``InvalidInput`` when the signature does not match.
        """
        if not self.webhook_secret:
            raise ExternalServiceFailure("Stripe webhook secret not configured")
        try:
            stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            self.logger.warning(f"Webhook signature verification failed: {e}")
            raise InvalidInput("Invalid signature") from e
        return json.loads(payload)

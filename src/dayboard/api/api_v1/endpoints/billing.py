import logging

from fastapi import APIRouter, Header, Request

from dayboard.api.deps import CurrentIdentity, SubscriptionServiceDep
from dayboard.core.exceptions import InvalidInput
from dayboard.schemas import CheckoutRequest, CheckoutResponse, PortalResponse
from dayboard.services.billing import to_provider_subscription

logger = logging.getLogger(__name__)

router = APIRouter()


def _invoice_subscription_id(invoice: dict) -> str | None:
    # Recent API versions nest it under parent.subscription_details
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


@router.post("/create-checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    identity: CurrentIdentity,
    service: SubscriptionServiceDep,
) -> CheckoutResponse:
    """Open a Stripe checkout session for the Pro or Premium plan."""
    session = await service.start_checkout(identity, request.plan)
    return CheckoutResponse(url=session.url, session_id=session.id)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(identity: CurrentIdentity, service: SubscriptionServiceDep) -> PortalResponse:
    """Open the Stripe customer portal to manage the subscription."""
    url = await service.open_billing_portal(identity.user_id)
    return PortalResponse(url=url)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    service: SubscriptionServiceDep,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
) -> dict:
    """Apply the subscription state transitions Stripe reports."""
    if not stripe_signature:
        raise InvalidInput("No signature")
    payload = await request.body()
    event = service.billing.construct_event(payload, stripe_signature)

    kind = event.get("type")
    data = (event.get("data") or {}).get("object") or {}
    logger.info(f"Stripe webhook event: {kind}")

    if kind == "checkout.session.completed":
        subscription_id = data.get("subscription")
        if not subscription_id:
            logger.error("Missing subscription in checkout session")
            return {"received": True}
        provider = service.billing.retrieve_subscription(subscription_id)
        await service.apply_provider_subscription(provider)

    elif kind in ("customer.subscription.created", "customer.subscription.updated"):
        await service.apply_provider_subscription(to_provider_subscription(data))

    elif kind == "customer.subscription.deleted":
        await service.apply_provider_deletion(to_provider_subscription(data))

    elif kind in ("invoice.payment_succeeded", "invoice.payment_failed"):
        subscription_id = _invoice_subscription_id(data)
        if not subscription_id:
            return {"received": True}
        provider = service.billing.retrieve_subscription(subscription_id)
        if kind == "invoice.payment_succeeded":
            await service.record_payment(provider)
        else:
            await service.record_payment_failure(provider)

    else:
        logger.info(f"Unhandled event type: {kind}")

    return {"received": True}

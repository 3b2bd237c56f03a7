"""Request dependencies: identity, billing client and services."""
import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

from dayboard.core.config import settings
from dayboard.core.exceptions import Unauthenticated
from dayboard.db.session import SessionDep
from dayboard.schemas import Identity
from dayboard.services.billing import BillingClient, StripeBillingClient
from dayboard.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Get a Supabase client instance."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def verify_token(token: str) -> Identity:
    """Verify a Supabase access token and return who it belongs to."""
    try:
        response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        error_str = str(e)
        logger.warning(f"Token verification failed: {error_str}")
        if "expired" in error_str.lower():
            raise Unauthenticated("Token has expired")
        raise Unauthenticated("Invalid token")

    if not response or not response.user:
        logger.warning("Token verification failed: No valid user found")
        raise Unauthenticated("Invalid token")

    metadata = response.user.user_metadata or {}
    name = metadata.get("full_name") or metadata.get("name")
    logger.debug(f"Token verified for user: {response.user.id}")
    return Identity(user_id=str(response.user.id), email=response.user.email or None, name=name)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    """Get the authenticated caller."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Unauthorized")
    return verify_token(credentials.credentials)


def get_billing_client() -> BillingClient:
    """Get the billing provider client."""
    return StripeBillingClient(
        api_key=settings.STRIPE_SECRET_KEY,
        app_url=settings.APP_URL,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    )


def get_subscription_service(
    db: SessionDep,
    billing: Annotated[BillingClient, Depends(get_billing_client)],
) -> SubscriptionService:
    return SubscriptionService(db, billing)


# Type aliases for dependencies
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]

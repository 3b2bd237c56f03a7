#!/usr/bin/env python3
"""
Put a user on a plan by hand, bypassing checkout (support / founders).

Usage: python -m dayboard.db.grant_plan <user_id> <free|pro|premium>

Only the local subscription row changes; nothing is written to Stripe. The
change is recorded in the plan change log with reason ``manual_grant``.
"""
import argparse
import asyncio
import logging
import sys

from dayboard.api.deps import get_billing_client
from dayboard.db.session import AsyncSessionLocal
from dayboard.schemas import PlanType
from dayboard.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


async def grant_plan(user_id: str, plan: PlanType) -> None:
    async with AsyncSessionLocal() as db:
        service = SubscriptionService(db, get_billing_client())
        subscription = await service.grant_plan(user_id, plan)
    logger.info(f"User {user_id} is now on {subscription.plan_type.value} ({subscription.status.value})")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Grant a plan to a user")
    parser.add_argument("user_id")
    parser.add_argument("plan", choices=[plan.value for plan in PlanType])
    args = parser.parse_args(argv)
    try:
        asyncio.run(grant_plan(args.user_id, PlanType(args.plan)))
        print(f"✅ Granted {args.plan} to {args.user_id}")
    except Exception as e:
        print(f"❌ Granting plan failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

from datetime import date, datetime, timedelta, timezone

import pytest

from dayboard.core.exceptions import InvalidPlan
from dayboard.schemas import PlanType, Subscription, SubscriptionStatus
from dayboard.services.subscription_service import (
    can_start_pro_trial,
    effective_plan,
    is_eligible_for_premium_bonus,
    parse_plan,
)
from dayboard.utils.dates import add_months, as_utc, from_timestamp

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def pro_subscription(**fields) -> Subscription:
    data = {
        "user_id": "user_123",
        "plan_type": PlanType.PRO,
        "status": SubscriptionStatus.ACTIVE,
        "stripe_subscription_id": "sub_1",
        "pro_started_at": add_months(NOW, -4),
    }
    data.update(fields)
    return Subscription(**data)


def test_pro_for_four_months_is_eligible():
    assert is_eligible_for_premium_bonus(pro_subscription(), now=NOW)


def test_trialing_pro_counts():
    assert is_eligible_for_premium_bonus(pro_subscription(status=SubscriptionStatus.TRIALING), now=NOW)


def test_exactly_three_calendar_months_is_eligible():
    started = add_months(NOW, -3)
    assert is_eligible_for_premium_bonus(pro_subscription(pro_started_at=started), now=NOW)
    assert not is_eligible_for_premium_bonus(pro_subscription(pro_started_at=started + timedelta(seconds=1)), now=NOW)


@pytest.mark.parametrize(
    "fields",
    [
        {"premium_bonus_claimed": True},
        {"plan_type": PlanType.PREMIUM},
        {"plan_type": PlanType.FREE},
        {"status": SubscriptionStatus.PAST_DUE},
        {"status": SubscriptionStatus.CANCELED},
        {"pro_started_at": None},
        {"pro_started_at": add_months(NOW, -2)},
    ],
)
def test_not_eligible(fields):
    assert not is_eligible_for_premium_bonus(pro_subscription(**fields), now=NOW)


def test_no_record_is_not_eligible():
    assert not is_eligible_for_premium_bonus(None, now=NOW)


def test_naive_timestamps_are_read_as_utc():
    started = add_months(NOW, -4).replace(tzinfo=None)
    assert is_eligible_for_premium_bonus(pro_subscription(pro_started_at=started), now=NOW)


@pytest.mark.parametrize(
    "status,plan,expected",
    [
        (SubscriptionStatus.ACTIVE, PlanType.PRO, PlanType.PRO),
        (SubscriptionStatus.TRIALING, PlanType.PREMIUM, PlanType.PREMIUM),
        (SubscriptionStatus.PAST_DUE, PlanType.PRO, PlanType.FREE),
        (SubscriptionStatus.CANCELED, PlanType.PREMIUM, PlanType.FREE),
        (SubscriptionStatus.NONE, PlanType.FREE, PlanType.FREE),
    ],
)
def test_effective_plan(status, plan, expected):
    assert effective_plan(Subscription(user_id="u", plan_type=plan, status=status)) == expected


def test_pro_trial_only_once():
    assert can_start_pro_trial(None)
    assert can_start_pro_trial(Subscription(user_id="u"))
    assert not can_start_pro_trial(Subscription(user_id="u", pro_trial_used=True))
    assert not can_start_pro_trial(Subscription(user_id="u", plan_type=PlanType.PREMIUM))


def test_parse_plan():
    assert parse_plan("pro") == PlanType.PRO
    assert parse_plan("premium") == PlanType.PREMIUM
    for bad in ("free", "gold", ""):
        with pytest.raises(InvalidPlan):
            parse_plan(bad)


@pytest.mark.parametrize(
    "value,months,expected",
    [
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2023, 1, 31), 1, date(2023, 2, 28)),
        (date(2024, 11, 15), 3, date(2025, 2, 15)),
        (date(2024, 3, 31), -1, date(2024, 2, 29)),
        (date(2024, 5, 31), 0, date(2024, 5, 31)),
    ],
)
def test_add_months_clamps_to_month_end(value, months, expected):
    assert add_months(value, months) == expected


def test_date_helpers():
    assert as_utc(None) is None
    assert as_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc
    assert from_timestamp(None) is None
    assert from_timestamp(0) is None
    assert from_timestamp(1704067200) == datetime(2024, 1, 1, tzinfo=timezone.utc)

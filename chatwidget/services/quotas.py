import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..enums import SubscriptionStatus
from ..models import ChatbotConfig, Subscription, SubscriptionPlan

logger = logging.getLogger(__name__)
_settings = get_settings()

UNLIMITED = -1
FREE_PLAN_NAME = "Free"
BILLING_PERIOD = timedelta(days=30)

DEFAULT_PLANS = [
    {
        "name": "Free",
        "description": "Get started with basic chatbot functionality",
        "price": 0,
        "max_bots": 1,
        "max_messages_per_month": 100,
        "features": ["1 chatbot", "100 messages", "Community support", "Email integration", "Analytics"],
    },
    {
        "name": "Basic",
        "description": "Essential features for small businesses",
        "price": 999,
        "max_bots": 1,
        "max_messages_per_month": 1000,
        "features": ["1 chatbot", "1,000 messages/month", "Email integration", "Analytics", "Custom branding"],
    },
    {
        "name": "Premium",
        "description": "Advanced features for growing businesses",
        "price": 2999,
        "max_bots": 3,
        "max_messages_per_month": 10000,
        "features": ["3 chatbots", "10,000 messages/month", "Email integration", "Analytics", "Custom branding"],
    },
    {
        "name": "Ultra",
        "description": "Complete solution for enterprises and agencies",
        "price": 9999,
        "max_bots": 5,
        "max_messages_per_month": 100000,
        "features": ["5 chatbots", "100,000 messages/month", "Email integration", "Analytics", "Custom branding"],
    },
]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_admin_user(user_id: Optional[int]) -> bool:
    admin_id = _settings.default_site_admin_user_id
    return admin_id is not None and user_id == admin_id


def seed_plans(db: Session) -> int:
    """Create or refresh the default plans. Returns how many rows were inserted."""

    created = 0
    for defaults in DEFAULT_PLANS:
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.name == defaults["name"]).first()
        if plan is None:
            plan = SubscriptionPlan(name=defaults["name"])
            db.add(plan)
            created += 1
        plan.description = defaults["description"]
        plan.price = defaults["price"]
        plan.currency = "eur"
        plan.billing_interval = "month"
        plan.max_bots = defaults["max_bots"]
        plan.max_messages_per_month = defaults["max_messages_per_month"]
        plan.features = list(defaults["features"])
        plan.is_active = True
    db.commit()
    return created


def _free_plan(db: Session) -> SubscriptionPlan:
    plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.name == FREE_PLAN_NAME).first()
    if plan:
        return plan
    logger.warning("Free plan missing; seeding default plans")
    seed_plans(db)
    return db.query(SubscriptionPlan).filter(SubscriptionPlan.name == FREE_PLAN_NAME).one()


def get_user_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )


def get_or_create_subscription(db: Session, user_id: int) -> Subscription:
    subscription = get_user_subscription(db, user_id)
    if subscription:
        return _roll_period(db, subscription)

    now = datetime.now(timezone.utc)
    subscription = Subscription(
        user_id=user_id,
        plan_id=_free_plan(db).id,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=now,
        current_period_end=now + BILLING_PERIOD,
        messages_used_this_month=0,
    )
    db.add(subscription)
    db.commit()
    logger.info("Assigned free subscription to user %s", user_id)
    return subscription


def _roll_period(db: Session, subscription: Subscription) -> Subscription:
    """Reset the monthly counter once the current period has ended."""

    period_end = _as_utc(subscription.current_period_end)
    now = datetime.now(timezone.utc)
    if period_end is None or period_end > now:
        return subscription
    while period_end <= now:
        period_end += BILLING_PERIOD
    subscription.current_period_start = period_end - BILLING_PERIOD
    subscription.current_period_end = period_end
    subscription.messages_used_this_month = 0
    db.commit()
    logger.info("Monthly usage reset | user=%s", subscription.user_id)
    return subscription


def check_message_limit(db: Session, user_id: int) -> bool:
    """True when the user may send one more chatbot message this period."""

    if is_admin_user(user_id):
        return True
    subscription = get_or_create_subscription(db, user_id)
    limit = subscription.plan.max_messages_per_month
    if limit == UNLIMITED:
        return True
    return (subscription.messages_used_this_month or 0) < limit


def increment_message_usage(db: Session, user_id: int) -> None:
    subscription = get_or_create_subscription(db, user_id)
    subscription.messages_used_this_month = (subscription.messages_used_this_month or 0) + 1
    db.commit()


def check_bot_limit(db: Session, user_id: int) -> bool:
    if is_admin_user(user_id):
        return True
    subscription = get_or_create_subscription(db, user_id)
    limit = subscription.plan.max_bots
    if limit == UNLIMITED:
        return True
    current = db.query(ChatbotConfig).filter(ChatbotConfig.user_id == user_id).count()
    return current < limit


def reset_monthly_usage(db: Session, user_id: int) -> None:
    subscription = get_user_subscription(db, user_id)
    if subscription:
        subscription.messages_used_this_month = 0
        db.commit()

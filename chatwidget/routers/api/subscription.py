from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...dependencies import get_current_user, get_db
from ...models import SubscriptionPlan
from ...schemas import PlanRead, SubscriptionRead
from ...services.quotas import get_or_create_subscription, is_admin_user

router = APIRouter()


@router.get("/plans", response_model=list[PlanRead])
def list_plans(db: Session = Depends(get_db)):
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.price.asc())
        .all()
    )


@router.get("/current")
def current_subscription(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    subscription = get_or_create_subscription(db, current_user.id)
    return {
        "subscription": SubscriptionRead.model_validate(subscription).model_dump(mode="json"),
        "isAdmin": is_admin_user(current_user.id),
    }

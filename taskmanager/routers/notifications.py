from typing import List

from fastapi import APIRouter, Depends

from ..models import User
from ..schemas.notification import Notification as NotificationSchema
from ..services import AppServices, get_services
from .auth import require_user_or_admin

router = APIRouter()


@router.get("/notifications", response_model=List[NotificationSchema])
def get_notifications(
    current_user: User = Depends(require_user_or_admin),
    services: AppServices = Depends(get_services),
):
    """The caller's notifications, oldest first."""
    return services.notification_log.query_by_user(str(current_user.id))

from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime

from ..notifications import NotificationType


class Notification(BaseModel):
    type: NotificationType
    user_id: str
    task_id: str
    message: str
    timestamp: datetime

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

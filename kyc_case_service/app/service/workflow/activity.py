import datetime
from typing import Optional

from kyc_case_service.app.models import CaseDB, ActivityLog, User
from kyc_case_service.app.models.enums import ActivityActionType, ActivityEntityType


def record_activity(
    case: CaseDB,
    actor: User,
    action: str,
    action_type: ActivityActionType,
    entity_type: ActivityEntityType,
    entity_id: str,
    details: Optional[str] = None,
    previous_value: Optional[str] = None,
    new_value: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> ActivityLog:
    """Appends one activity entry to `case` and bumps `updated_at`. Callers pass a working copy."""
    timestamp = now or datetime.datetime.now(datetime.UTC)
    activity = ActivityLog(
        timestamp=timestamp,
        actor=actor.name,
        actor_role=actor.role,
        actor_id=actor.id,
        action=action,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        previous_value=previous_value,
        new_value=new_value,
    )
    case.activities.append(activity)
    case.updated_at = timestamp
    return activity

from sqlmodel import Session
from typing import List, Optional
from uuid import UUID
import logging

from network_earnings.core.db import table_exists
from network_earnings.core.security import Principal
from network_earnings.models.activity import Activity, ActivityRead, ActivityType
from network_earnings.models.earning import Earning
from network_earnings.models.lead import Lead
from network_earnings.utils.aggregation import synthesize_activity
from network_earnings.utils.visibility import ListFilters, list_visible

logger = logging.getLogger(__name__)


class ActivityService:
    def __init__(self, session: Session):
        self.session = session

    def is_available(self) -> bool:
        return table_exists(self.session, Activity.__tablename__)

    def record(
        self,
        user_id: Optional[UUID],
        type: ActivityType,
        title: str,
        description: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id=None,
    ) -> Optional[Activity]:
        """Add an activity row to the current transaction; the caller commits.

        Does nothing when the deployment has no activities table.
        """
        if user_id is None or not self.is_available():
            return None
        activity = Activity(
            user_id=user_id,
            type=type,
            title=title,
            description=description,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
        )
        self.session.add(activity)
        return activity

    def list_activities(self, principal: Principal, filters: Optional[ListFilters] = None) -> List[Activity]:
        if not self.is_available():
            logger.warning("Activities requested but the activities table does not exist")
            return []
        return list_visible(self.session, Activity, principal, filters)

    def recent(self, principal: Principal, limit: int = 5) -> List[ActivityRead]:
        """Newest activity of the caller.

        Falls back to a feed built from the newest leads and earnings when no
        activity rows exist.
        """
        rows = self.list_activities(principal, ListFilters(limit=limit))
        if rows:
            return [
                ActivityRead(
                    id=str(row.id),
                    type=row.type,
                    title=row.title,
                    description=row.description,
                    entity_type=row.entity_type,
                    entity_id=row.entity_id,
                    created_at=row.created_at,
                )
                for row in rows
            ]

        leads = list_visible(self.session, Lead, principal, ListFilters(limit=3))
        earnings = list_visible(self.session, Earning, principal, ListFilters(limit=2))
        return [
            ActivityRead(**vars(item))
            for item in synthesize_activity(leads, earnings, limit=limit)
        ]

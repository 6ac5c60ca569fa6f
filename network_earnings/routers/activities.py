from fastapi import APIRouter, Depends, Query
from typing import List

from network_earnings.core.db import SessionDep
from network_earnings.core.dependencies.auth import CurrentPrincipal
from network_earnings.models.activity import ActivityRead
from network_earnings.services.activity_service import ActivityService
from network_earnings.utils.visibility import ListFilters, list_filters

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("/", response_model=List[ActivityRead])
def list_activities(
    principal: CurrentPrincipal,
    session: SessionDep,
    filters: ListFilters = Depends(list_filters),
):
    rows = ActivityService(session).list_activities(principal, filters)
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


@router.get("/recent", response_model=List[ActivityRead])
def recent_activity(
    principal: CurrentPrincipal,
    session: SessionDep,
    limit: int = Query(5, ge=1, le=50),
):
    return ActivityService(session).recent(principal, limit)

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from jellyfin_manager.api.deps import get_activity_repo, get_current_user, get_policy
from jellyfin_manager.api.schemas import ActivityListResponse, ActivityResponse
from jellyfin_manager.components.activity import MAX_PAGE_SIZE, QueryActivityInput, run_query
from jellyfin_manager.domain.entities import AppUser

router = APIRouter()


@router.get("", response_model=ActivityListResponse)
def list_activity(
    type: str | None = None,
    username: str | None = None,
    invite_code: str | None = None,
    created_by: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    limit: int = Query(100, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
) -> ActivityListResponse:
    """Activity log, newest first (admin only)."""
    inp = QueryActivityInput(
        actor=current_user,
        type=type,
        username=username,
        invite_code=invite_code,
        created_by=created_by,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
        offset=offset,
    )
    result = run_query(inp, repo=repo, policy=policy)

    if not result.success:
        if result.error == "Access denied":
            raise HTTPException(status_code=403, detail="Access denied")
        raise HTTPException(status_code=400, detail=result.error)

    return ActivityListResponse(
        items=[ActivityResponse.model_validate(e) for e in result.entries],
        total=result.total,
        limit=limit,
        offset=offset,
    )

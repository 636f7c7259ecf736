from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.core.auth import CurrentUser, get_current_user
from app.db.mongo import get_db
from app.repositories.charity_goal_repo import CharityGoalRepository
from app.repositories.charity_repo import CharityRepository
from app.schemas.charity import GoalCreate, GoalOrderRequest, GoalResponse, GoalUpdate
from app.utils.goal_validation import GoalNotFoundError, GoalValidationError

router = APIRouter()


def _raise_for(exc: GoalValidationError):
    if isinstance(exc, GoalNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/", response_model=List[GoalResponse])
async def list_goals(
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """List the user's goals: active ones by priority, then completed ones"""
    goals = await CharityGoalRepository(db).list_goals(current_user.id)
    return [GoalResponse.from_goal(goal) for goal in goals]


@router.post("/", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def add_goal(
    goal_in: GoalCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Add a charity goal at the end of the priority order"""
    charity = await CharityRepository(db).get_charity(goal_in.charity_id)
    if not charity or not charity.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Charity not found")

    try:
        goal = await CharityGoalRepository(db).add_goal(
            current_user.id, goal_in.charity_id, goal_in.goal_amount
        )
    except GoalValidationError as exc:
        _raise_for(exc)
    return GoalResponse.from_goal(goal)


@router.put("/order", response_model=List[GoalResponse])
async def reorder_goals(
    order_in: GoalOrderRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Set the priority order of all active goals"""
    try:
        goals = await CharityGoalRepository(db).reorder(current_user.id, order_in.goal_ids)
    except GoalValidationError as exc:
        _raise_for(exc)
    return [GoalResponse.from_goal(goal) for goal in goals]


@router.patch("/{goal_id}", response_model=GoalResponse)
async def update_goal(
    goal_id: str,
    goal_in: GoalUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Change a goal's target amount"""
    try:
        goal = await CharityGoalRepository(db).update_goal_amount(
            current_user.id, goal_id, goal_in.goal_amount
        )
    except GoalValidationError as exc:
        _raise_for(exc)
    return GoalResponse.from_goal(goal)


@router.post("/{goal_id}/reset", response_model=GoalResponse)
async def reset_goal(
    goal_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Start a goal over from zero"""
    try:
        goal = await CharityGoalRepository(db).reset_goal(current_user.id, goal_id)
    except GoalValidationError as exc:
        _raise_for(exc)
    return GoalResponse.from_goal(goal)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_goal(
    goal_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db = Depends(get_db)
):
    """Remove a goal; remaining goals are renumbered"""
    removed = await CharityGoalRepository(db).remove_goal(current_user.id, goal_id)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

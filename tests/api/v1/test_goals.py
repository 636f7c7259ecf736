from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from bson import ObjectId

from app.models.charity import Charity
from app.models.charity_goal import CharityGoal
from app.utils.goal_validation import GoalNotFoundError, GoalValidationError

GOAL_REPO = "app.repositories.charity_goal_repo.CharityGoalRepository"


def make_goal(charity_id="red-cross", priority=1, goal_cents=2500, current_cents=0):
    return CharityGoal(
        id=ObjectId(),
        user_id="user-123",
        charity_id=charity_id,
        goal_amount_cents=goal_cents,
        current_amount_cents=current_cents,
        priority=priority
    )


@pytest.mark.asyncio
async def test_list_goals(client):
    goals = [make_goal("red-cross", 1, current_cents=1240), make_goal("unicef", 2)]

    with patch(f"{GOAL_REPO}.list_goals", new_callable=AsyncMock) as mock_list:
        mock_list.return_value = goals

        response = await client.get("/api/v1/goals/")

    assert response.status_code == 200
    data = response.json()
    assert [g["charity_id"] for g in data] == ["red-cross", "unicef"]
    assert Decimal(data[0]["current_amount"]) == Decimal("12.40")
    mock_list.assert_awaited_once_with("user-123")


@pytest.mark.asyncio
async def test_add_goal(client):
    charity = Charity(id="red-cross", name="Red Cross")

    with patch("app.repositories.charity_repo.CharityRepository.get_charity", new_callable=AsyncMock) as mock_charity, \
         patch(f"{GOAL_REPO}.add_goal", new_callable=AsyncMock) as mock_add:
        mock_charity.return_value = charity
        mock_add.return_value = make_goal("red-cross", 3)

        response = await client.post(
            "/api/v1/goals/",
            json={"charity_id": "red-cross", "goal_amount": "25.00"}
        )

    assert response.status_code == 201
    assert response.json()["priority"] == 3
    mock_add.assert_awaited_once_with("user-123", "red-cross", Decimal("25.00"))


@pytest.mark.asyncio
async def test_add_goal_unknown_charity(client):
    with patch("app.repositories.charity_repo.CharityRepository.get_charity", new_callable=AsyncMock) as mock_charity:
        mock_charity.return_value = None

        response = await client.post(
            "/api/v1/goals/",
            json={"charity_id": "nope", "goal_amount": "25.00"}
        )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_add_goal_over_capacity(client):
    charity = Charity(id="wwf", name="WWF")

    with patch("app.repositories.charity_repo.CharityRepository.get_charity", new_callable=AsyncMock) as mock_charity, \
         patch(f"{GOAL_REPO}.add_goal", new_callable=AsyncMock) as mock_add:
        mock_charity.return_value = charity
        mock_add.side_effect = GoalValidationError("Maximum 5 active charities allowed")

        response = await client.post(
            "/api/v1/goals/",
            json={"charity_id": "wwf", "goal_amount": "10.00"}
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "Maximum 5 active charities allowed"


@pytest.mark.asyncio
async def test_add_goal_rejects_negative_amount(client):
    response = await client.post(
        "/api/v1/goals/",
        json={"charity_id": "wwf", "goal_amount": "-5.00"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reorder_goals(client):
    goals = [make_goal("unicef", 1), make_goal("red-cross", 2)]
    ids = [str(g.id) for g in goals]

    with patch(f"{GOAL_REPO}.reorder", new_callable=AsyncMock) as mock_reorder:
        mock_reorder.return_value = goals

        response = await client.put("/api/v1/goals/order", json={"goal_ids": ids})

    assert response.status_code == 200
    assert [g["priority"] for g in response.json()] == [1, 2]
    mock_reorder.assert_awaited_once_with("user-123", ids)


@pytest.mark.asyncio
async def test_reorder_goals_incomplete_list(client):
    with patch(f"{GOAL_REPO}.reorder", new_callable=AsyncMock) as mock_reorder:
        mock_reorder.side_effect = GoalValidationError("Goal ordering must list every active goal exactly once")

        response = await client.put("/api/v1/goals/order", json={"goal_ids": [str(ObjectId())]})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_goal_amount(client):
    goal = make_goal(goal_cents=500, current_cents=500)
    goal.is_completed = True

    with patch(f"{GOAL_REPO}.update_goal_amount", new_callable=AsyncMock) as mock_update:
        mock_update.return_value = goal

        response = await client.patch(f"/api/v1/goals/{goal.id}", json={"goal_amount": "5.00"})

    assert response.status_code == 200
    assert response.json()["is_completed"] is True
    mock_update.assert_awaited_once_with("user-123", str(goal.id), Decimal("5.00"))


@pytest.mark.asyncio
async def test_reset_missing_goal(client):
    with patch(f"{GOAL_REPO}.reset_goal", new_callable=AsyncMock) as mock_reset:
        mock_reset.side_effect = GoalNotFoundError("Goal not found")

        response = await client.post(f"/api/v1/goals/{ObjectId()}/reset")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_remove_goal(client):
    with patch(f"{GOAL_REPO}.remove_goal", new_callable=AsyncMock) as mock_remove:
        mock_remove.return_value = True
        response = await client.delete(f"/api/v1/goals/{ObjectId()}")
        assert response.status_code == 204

        mock_remove.return_value = False
        response = await client.delete(f"/api/v1/goals/{ObjectId()}")
        assert response.status_code == 404

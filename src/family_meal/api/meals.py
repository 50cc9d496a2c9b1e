"""Meal and comment endpoints."""

import datetime as dt
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Response, status

from family_meal.api.dependencies import clean_id, current_actor, get_container
from family_meal.api.schemas import (
    CommentRequest,
    MealCreateRequest,
    comment_payload,
    meal_payload,
)
from family_meal.containers import AppContainer
from family_meal.domain.meals import to_datetime
from family_meal.domain.models import Actor
from family_meal.services.meals import MealDraft

router = APIRouter(prefix="/meals", tags=["meals"])


@router.get("")
def list_meals(
    date: dt.date | None = Query(default=None),
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return the meals of a local day (today by default)."""
    service = container.meal_service
    meals = service.list_for_day(actor, date or service.today())
    return {"meals": [meal_payload(meal) for meal in meals]}


@router.post("")
def create_meal(
    body: MealCreateRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    draft = MealDraft(
        user_ids=body.user_ids,
        description=body.description,
        type=body.type,
        image_url=body.image_url,
        timestamp=(
            to_datetime(body.timestamp, dt.datetime.now(tz=dt.UTC))
            if body.timestamp is not None
            else None
        ),
    )
    meal = container.meal_service.create(actor, draft)
    return {"success": True, "meal": meal_payload(meal)}


@router.get("/search")
def search_meals(
    q: str = Query(default=""),
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    meals = container.meal_service.search(actor, q)
    return {"meals": [meal_payload(meal) for meal in meals]}


@router.get("/stats/weekly")
def weekly_stats(
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return meal counts for the trailing seven days."""
    days = container.meal_service.weekly_stats(actor)
    return {
        "days": [
            {"date": day.day.isoformat(), "label": day.label, "count": day.count}
            for day in days
        ]
    }


@router.get("/{meal_id}")
def get_meal(
    meal_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    meal = container.meal_service.get(actor, clean_id(meal_id, "meal"))
    return {"meal": meal_payload(meal)}


@router.patch("/{meal_id}")
def update_meal(
    meal_id: str,
    changes: dict[str, Any] = Body(...),
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Apply an owner edit to a meal."""
    meal = container.meal_service.update(actor, clean_id(meal_id, "meal"), changes)
    return {"ok": True, "meal": meal_payload(meal)}


@router.delete("/{meal_id}")
def delete_meal(
    meal_id: str,
    response: Response,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Delete a meal and its comments; 202 while another delete is running."""
    outcome = container.deletion_service.delete(actor, clean_id(meal_id, "meal"))
    if outcome.status == "already_processing":
        response.status_code = status.HTTP_202_ACCEPTED
    return {"ok": True, "deleted": outcome.deleted, "status": outcome.status}


@router.get("/{meal_id}/comments")
def list_comments(
    meal_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    comments = container.comment_service.list(actor, clean_id(meal_id, "meal"))
    return {"comments": [comment_payload(comment) for comment in comments]}


@router.post("/{meal_id}/comments")
def add_comment(
    meal_id: str,
    body: CommentRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    comment = container.comment_service.add(
        actor, clean_id(meal_id, "meal"), body.text
    )
    return {"ok": True, "comment": comment_payload(comment)}


@router.patch("/{meal_id}/comments/{comment_id}")
def update_comment(
    meal_id: str,
    comment_id: str,
    body: CommentRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    comment = container.comment_service.update(
        actor,
        clean_id(meal_id, "meal"),
        clean_id(comment_id, "comment"),
        body.text,
    )
    return {"ok": True, "comment": comment_payload(comment)}


@router.delete("/{meal_id}/comments/{comment_id}")
def delete_comment(
    meal_id: str,
    comment_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    container.comment_service.remove(
        actor, clean_id(meal_id, "meal"), clean_id(comment_id, "comment")
    )
    return {"ok": True}

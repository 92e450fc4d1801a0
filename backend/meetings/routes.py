from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException

from .controller import MeetingsController

router = APIRouter()


@lru_cache
def get_meetings_controller() -> MeetingsController:
    return MeetingsController()


@router.get("")
def list_meetings(user_id: str | None = None, controller: MeetingsController = Depends(get_meetings_controller)):
    return controller.list_meetings(user_id)


@router.post("", status_code=201)
def create_meeting(payload: dict, controller: MeetingsController = Depends(get_meetings_controller)):
    try:
        return controller.create_meeting(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/{meeting_id}")
def get_meeting(meeting_id: str, controller: MeetingsController = Depends(get_meetings_controller)):
    try:
        return controller.get_meeting_detail(meeting_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Meeting not found") from exc


@router.patch("/{meeting_id}/end")
def end_meeting(meeting_id: str, controller: MeetingsController = Depends(get_meetings_controller)):
    try:
        return controller.end_meeting(meeting_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Meeting not found") from exc

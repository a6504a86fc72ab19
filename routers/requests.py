from typing import Dict, Iterable, List

from fastapi import APIRouter
from sqlmodel import Session, col, select

import lifecycle
from db import SessionDep
from models import HelpRequest, User
from schemas import HelpRequestCreate, HelpRequestRead, PersonSummary
from .auth import ActorDep

router = APIRouter(tags=["requests"])


def load_people(session: Session, user_ids: Iterable[int]) -> Dict[int, PersonSummary]:
    ids = {user_id for user_id in user_ids if user_id is not None}
    if not ids:
        return {}
    users = session.exec(select(User).where(col(User.id).in_(ids))).all()
    return {user.id: PersonSummary.model_validate(user) for user in users}


def populate_requests(
    session: Session, requests: List[HelpRequest]
) -> List[HelpRequestRead]:
    """Attach requester and volunteer name/email to each request."""
    people = load_people(
        session,
        [r.requester_id for r in requests] + [r.assigned_volunteer_id for r in requests],
    )
    rows = []
    for req in requests:
        row = HelpRequestRead.model_validate(req, from_attributes=True)
        row.requester = people.get(req.requester_id)
        if req.assigned_volunteer_id is not None:
            row.assigned_volunteer = people.get(req.assigned_volunteer_id)
        rows.append(row)
    return rows


def populate_request(session: Session, req: HelpRequest) -> HelpRequestRead:
    return populate_requests(session, [req])[0]


@router.post("")
def create_request(request_data: HelpRequestCreate, session: SessionDep, actor: ActorDep):
    req = lifecycle.create(
        session,
        actor,
        title=request_data.title,
        description=request_data.description,
        category=request_data.category,
    )
    return {
        "msg": "Help request created successfully!",
        "request": populate_request(session, req),
    }


@router.get("", response_model=List[HelpRequestRead])
def list_requests(session: SessionDep, actor: ActorDep):
    return populate_requests(session, lifecycle.list_all(session))


@router.get("/pending", response_model=List[HelpRequestRead])
def list_pending_requests(session: SessionDep, actor: ActorDep):
    return populate_requests(session, lifecycle.list_pending(session, actor))


@router.get("/mine", response_model=List[HelpRequestRead])
def list_my_requests(session: SessionDep, actor: ActorDep):
    return populate_requests(session, lifecycle.list_mine(session, actor))


@router.get("/assigned-to-me", response_model=List[HelpRequestRead])
def list_assigned_requests(session: SessionDep, actor: ActorDep):
    return populate_requests(
        session, lifecycle.list_assigned_to_volunteer(session, actor)
    )


@router.get("/feed", response_model=List[HelpRequestRead])
def volunteer_feed(session: SessionDep, actor: ActorDep):
    return populate_requests(session, lifecycle.list_volunteer_feed(session, actor))


@router.get("/{request_id}", response_model=HelpRequestRead)
def get_request(request_id: str, session: SessionDep, actor: ActorDep):
    return populate_request(session, lifecycle.get_request(session, request_id))


@router.put("/{request_id}/accept")
def accept_request(request_id: str, session: SessionDep, actor: ActorDep):
    req = lifecycle.accept(session, request_id, actor)
    return {
        "msg": "Request accepted successfully!",
        "request": populate_request(session, req),
    }


@router.put("/{request_id}/complete")
def complete_request(request_id: str, session: SessionDep, actor: ActorDep):
    req = lifecycle.complete(session, request_id, actor)
    return {
        "msg": "Request marked as completed!",
        "request": populate_request(session, req),
    }


@router.put("/{request_id}/cancel")
def cancel_request(request_id: str, session: SessionDep, actor: ActorDep):
    req = lifecycle.cancel(session, request_id, actor)
    return {
        "msg": "Request cancelled successfully!",
        "request": populate_request(session, req),
    }


@router.put("/{request_id}/unassign")
def unassign_request(request_id: str, session: SessionDep, actor: ActorDep):
    req = lifecycle.unassign(session, request_id, actor)
    return {
        "msg": "Successfully unassigned from request. It is now pending again.",
        "request": populate_request(session, req),
    }


@router.delete("/{request_id}")
def delete_request(request_id: str, session: SessionDep, actor: ActorDep):
    lifecycle.delete(session, request_id, actor)
    return {"msg": "Request removed"}

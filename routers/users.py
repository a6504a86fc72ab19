# routers/users.py
import logging
from typing import List

from fastapi import APIRouter, Response
from sqlalchemy import delete, or_, update
from sqlmodel import Session, col, select

from db import SessionDep
from errors import Forbidden, NotFound
from models import (
    Complaint,
    HelpRequest,
    RequestStatus,
    Review,
    Role,
    User,
    VolunteerProfile,
    utcnow,
)
from schemas import UserRead, VolunteerProfileUpdate
from .auth import ActorDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


def delete_user_data(session: Session, user: User) -> None:
    """
    Remove a user and everything hanging off them, then commit.
    Requests they were holding go back to pending.
    """
    user_id = user.id
    owned = select(HelpRequest.id).where(HelpRequest.requester_id == user_id)

    # 1) Reviews written by them, about them, or on their requests
    session.exec(  # type: ignore[call-overload]
        delete(Review).where(
            or_(
                col(Review.reviewer_id) == user_id,
                col(Review.reviewed_volunteer_id) == user_id,
                col(Review.help_request_id).in_(owned),
            )
        )
    )

    # 2) Complaints filed by or against them
    session.exec(  # type: ignore[call-overload]
        delete(Complaint).where(
            or_(
                col(Complaint.filed_by_id) == user_id,
                col(Complaint.against_volunteer_id) == user_id,
            )
        )
    )

    # 3) Volunteer profile
    session.exec(  # type: ignore[call-overload]
        delete(VolunteerProfile).where(col(VolunteerProfile.user_id) == user_id)
    )

    # 4) Requests they were assigned to
    session.exec(  # type: ignore[call-overload]
        update(HelpRequest)
        .where(
            col(HelpRequest.assigned_volunteer_id) == user_id,
            col(HelpRequest.status) == RequestStatus.ACCEPTED,
        )
        .values(status=RequestStatus.PENDING, assigned_volunteer_id=None)
    )
    session.exec(  # type: ignore[call-overload]
        update(HelpRequest)
        .where(col(HelpRequest.assigned_volunteer_id) == user_id)
        .values(assigned_volunteer_id=None, has_review=False)
    )

    # 5) Requests they made
    session.exec(  # type: ignore[call-overload]
        delete(HelpRequest).where(col(HelpRequest.requester_id) == user_id)
    )

    # 6) Finally, the user record itself
    session.delete(user)
    session.commit()
    logger.info("Deleted user %s and their data", user_id)


@router.get("/volunteers", response_model=List[UserRead])
def list_volunteers(session: SessionDep, actor: ActorDep):
    """
    List every user with the volunteer role.
    """
    return session.exec(
        select(User).where(User.role == Role.VOLUNTEER).order_by(col(User.name))
    ).all()


@router.get("/me/profile", response_model=VolunteerProfile)
def read_my_profile(session: SessionDep, actor: ActorDep):
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Access denied. Not a volunteer.")
    profile = session.exec(
        select(VolunteerProfile).where(VolunteerProfile.user_id == actor.id)
    ).first()
    if profile is None:
        raise NotFound("Volunteer profile not found for this user.")
    return profile


@router.post("/me/profile")
def save_my_profile(
    profile_in: VolunteerProfileUpdate,
    session: SessionDep,
    actor: ActorDep,
):
    """
    Create the volunteer's profile, or update it if one exists.
    """
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Access denied. Not a volunteer.")

    location = profile_in.location.model_dump() if profile_in.location else {}
    fields = {
        "bio": profile_in.bio,
        "skills": [s.strip() for s in profile_in.skills if s.strip()],
        "availability": [a.strip() for a in profile_in.availability if a.strip()],
        "address": location.get("address"),
        "city": location.get("city"),
        "state": location.get("state"),
        "zip_code": location.get("zip_code"),
        "updated_at": utcnow(),
    }

    profile = session.exec(
        select(VolunteerProfile).where(VolunteerProfile.user_id == actor.id)
    ).first()
    if profile is None:
        profile = VolunteerProfile(user_id=actor.id, **fields)
        msg = "Volunteer profile created!"
    else:
        for key, value in fields.items():
            setattr(profile, key, value)
        msg = "Volunteer profile updated!"

    session.add(profile)
    session.commit()
    session.refresh(profile)
    return {"msg": msg, "profile": profile}


@router.get("/{user_id}/profile")
def get_user_profile(user_id: int, session: SessionDep, actor: ActorDep):
    """
    Public details for a user, plus their volunteer profile if they have one.
    """
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    profile = None
    if user.role == Role.VOLUNTEER:
        profile = session.exec(
            select(VolunteerProfile).where(VolunteerProfile.user_id == user.id)
        ).first()

    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
        },
        "profile": profile,
    }


@router.delete("/me", status_code=204)
def delete_own_account(session: SessionDep, actor: ActorDep):
    user = session.get(User, actor.id)
    if user is None:
        raise NotFound("User not found")
    delete_user_data(session, user)
    return Response(status_code=204)

import logging
from typing import List

from fastapi import APIRouter
from sqlmodel import col, select

from db import SessionDep
from errors import Forbidden, NotFound, ValidationError
from models import Complaint, Role, User
from schemas import ComplaintCreate
from .auth import ActorDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["complaints"])


@router.post("")
def lodge_complaint(complaint_in: ComplaintCreate, session: SessionDep, actor: ActorDep):
    """
    File a complaint against a volunteer.
    """
    if actor.role != Role.HELP_SEEKER:
        raise Forbidden("Access denied. Not a help seeker.")

    volunteer = session.get(User, complaint_in.against_volunteer_id)
    if volunteer is None:
        raise NotFound("Volunteer not found")
    if volunteer.role != Role.VOLUNTEER:
        raise ValidationError("Complaints can only be filed against volunteers.")

    complaint = Complaint(
        filed_by_id=actor.id,
        against_volunteer_id=volunteer.id,
        title=complaint_in.title,
        description=complaint_in.description,
    )
    session.add(complaint)
    session.commit()
    session.refresh(complaint)
    logger.info(
        "Complaint %s filed by user %s against volunteer %s",
        complaint.id,
        actor.id,
        volunteer.id,
    )
    return {"msg": "Complaint lodged successfully!", "complaint": complaint}


@router.get("/mine", response_model=List[Complaint])
def list_my_complaints(session: SessionDep, actor: ActorDep):
    if actor.role != Role.HELP_SEEKER:
        raise Forbidden("Access denied. Not a help seeker.")
    return session.exec(
        select(Complaint)
        .where(Complaint.filed_by_id == actor.id)
        .order_by(col(Complaint.filed_at).desc(), col(Complaint.id).desc())
    ).all()

import logging
from datetime import datetime, time, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter
from sqlalchemy import func, or_
from sqlmodel import col, select

import lifecycle
from db import SessionDep
from errors import NotFound, ValidationError
from models import Complaint, ComplaintStatus, HelpRequest, RequestStatus, Role, User, utcnow
from schemas import (
    AdminStatusUpdate,
    ComplaintStatusUpdate,
    HelpRequestRead,
    RoleCount,
    RoleUpdate,
    StatusCount,
    UserRead,
)
from .auth import AdminDep
from .requests import load_people, populate_request, populate_requests
from .users import delete_user_data

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


def _as_utc(value: datetime) -> datetime:
    # query strings without an offset are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _get_user(session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


# ---- users ----


@router.get("/users", response_model=List[UserRead])
def list_users(
    session: SessionDep,
    admin: AdminDep,
    search: Optional[str] = None,
    role: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """
    List users, optionally filtered by name/email search, role and
    registration date range. end_date includes the whole day.
    """
    query = select(User)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(col(User.name).ilike(pattern), col(User.email).ilike(pattern))
        )

    if role and role != "all":
        try:
            query = query.where(User.role == Role(role))
        except ValueError:
            raise ValidationError("Invalid role provided.") from None

    if start_date is not None:
        query = query.where(User.created_at >= _as_utc(start_date))

    if end_date is not None:
        end_day = _as_utc(end_date).date()
        end_of_day = datetime.combine(end_day, time.min, tzinfo=timezone.utc) + timedelta(days=1)
        query = query.where(User.created_at < end_of_day)

    users = session.exec(query.order_by(col(User.created_at).desc())).all()
    logger.info("Admin %s listed %d users", admin.id, len(users))
    return users


@router.get("/users/{user_id}/details")
def get_user_details(user_id: int, session: SessionDep, admin: AdminDep):
    """
    User record plus activity counts for the admin panel.
    """
    user = _get_user(session, user_id)

    def count(stmt) -> int:
        return session.exec(stmt).one()

    requests_initiated = 0
    requests_accepted = 0
    requests_completed = 0
    if user.role == Role.HELP_SEEKER:
        requests_initiated = count(
            select(func.count()).select_from(HelpRequest).where(HelpRequest.requester_id == user_id)
        )
    if user.role == Role.VOLUNTEER:
        requests_accepted = count(
            select(func.count())
            .select_from(HelpRequest)
            .where(
                HelpRequest.assigned_volunteer_id == user_id,
                col(HelpRequest.status).in_(
                    [RequestStatus.ACCEPTED, RequestStatus.COMPLETED]
                ),
            )
        )
        requests_completed = count(
            select(func.count())
            .select_from(HelpRequest)
            .where(
                HelpRequest.assigned_volunteer_id == user_id,
                HelpRequest.status == RequestStatus.COMPLETED,
            )
        )

    complaints_filed = count(
        select(func.count()).select_from(Complaint).where(Complaint.filed_by_id == user_id)
    )
    complaints_against = count(
        select(func.count())
        .select_from(Complaint)
        .where(Complaint.against_volunteer_id == user_id)
    )

    return {
        "user": UserRead.model_validate(user),
        "stats": {
            "requests_initiated": requests_initiated,
            "requests_accepted": requests_accepted,
            "requests_completed": requests_completed,
            "complaints_filed": complaints_filed,
            "complaints_against": complaints_against,
        },
    }


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    update: RoleUpdate,
    session: SessionDep,
    admin: AdminDep,
):
    user = _get_user(session, user_id)
    user.role = update.role
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Admin %s set role of user %s to %s", admin.id, user.id, update.role.value)
    return {
        "msg": f"User role updated to {update.role.value}.",
        "user": UserRead.model_validate(user),
    }


@router.delete("/users/{user_id}")
def delete_user(user_id: int, session: SessionDep, admin: AdminDep):
    user = _get_user(session, user_id)
    if user.id == admin.id:
        raise ValidationError("Admins cannot delete their own account via this panel.")
    delete_user_data(session, user)
    return {"msg": "User removed successfully!"}


# ---- requests ----


@router.get("/requests", response_model=List[HelpRequestRead])
def list_all_requests(session: SessionDep, admin: AdminDep):
    return populate_requests(session, lifecycle.list_all(session))


@router.put("/requests/{request_id}/status")
def set_request_status(
    request_id: str,
    update: AdminStatusUpdate,
    session: SessionDep,
    admin: AdminDep,
):
    req = lifecycle.admin_set_status(
        session,
        request_id,
        admin,
        update.status,
        volunteer_id=update.volunteer_id,
    )
    return {
        "msg": f"Request status updated to {req.status.value}.",
        "request": populate_request(session, req),
    }


@router.delete("/requests/{request_id}")
def delete_any_request(request_id: str, session: SessionDep, admin: AdminDep):
    lifecycle.delete(session, request_id, admin)
    return {"msg": "Help request removed successfully!"}


# ---- complaints ----


@router.get("/complaints")
def list_complaints(session: SessionDep, admin: AdminDep):
    complaints = session.exec(
        select(Complaint).order_by(col(Complaint.filed_at).desc(), col(Complaint.id).desc())
    ).all()
    people = load_people(
        session,
        [c.filed_by_id for c in complaints] + [c.against_volunteer_id for c in complaints],
    )
    return [
        {
            **complaint.model_dump(),
            "filed_by": people.get(complaint.filed_by_id),
            "against_volunteer": people.get(complaint.against_volunteer_id),
        }
        for complaint in complaints
    ]


@router.put("/complaints/{complaint_id}/status")
def update_complaint_status(
    complaint_id: int,
    update: ComplaintStatusUpdate,
    session: SessionDep,
    admin: AdminDep,
):
    complaint = session.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFound("Complaint not found")

    complaint.status = update.status
    if update.status in (ComplaintStatus.RESOLVED, ComplaintStatus.DISMISSED):
        complaint.resolved_at = utcnow()
    else:
        complaint.resolved_at = None

    session.add(complaint)
    session.commit()
    session.refresh(complaint)
    return {
        "msg": f"Complaint status updated to {update.status.value}.",
        "complaint": complaint,
    }


# ---- stats ----


@router.get("/stats/user-roles", response_model=List[RoleCount])
def user_role_stats(session: SessionDep, admin: AdminDep):
    rows = session.exec(
        select(User.role, func.count()).group_by(User.role)
    ).all()
    return [RoleCount(role=role, count=n) for role, n in rows]


@router.get("/stats/request-statuses", response_model=List[StatusCount])
def request_status_stats(session: SessionDep, admin: AdminDep):
    rows = session.exec(
        select(HelpRequest.status, func.count()).group_by(HelpRequest.status)
    ).all()
    return [StatusCount(status=status, count=n) for status, n in rows]

"""
Help-request lifecycle.

pending -> accepted -> completed
accepted -> pending (unassign)
pending | accepted -> cancelled

Every mutation re-reads the row, checks role and ownership against it, then
writes with a conditional UPDATE keyed on the status and assignee it saw.
If another writer got there first the UPDATE matches nothing and the caller
gets a Conflict naming the status that is stored now.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from sqlalchemy import or_, update
from sqlmodel import Session, col, select

from errors import Conflict, Forbidden, NotAuthorized, NotFound, ValidationError
from models import (
    TERMINAL_STATUSES,
    Category,
    HelpRequest,
    RequestStatus,
    Review,
    Role,
    User,
)

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
MAX_REQUEST_ID = 2**63 - 1


@dataclass(frozen=True)
class Actor:
    """Caller identity taken from a verified credential."""

    id: int
    role: Role
    name: str = ""


def parse_request_id(raw: Union[int, str]) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    else:
        text = str(raw).strip()
        if not (text.isascii() and text.isdigit()):
            raise NotFound("Request not found (invalid ID format).")
        value = int(text)
    # ids are signed 64-bit in the store
    if value <= 0 or value > MAX_REQUEST_ID:
        raise NotFound("Request not found (invalid ID format).")
    return value


def get_request(session: Session, request_id: Union[int, str]) -> HelpRequest:
    req = session.get(HelpRequest, parse_request_id(request_id))
    if req is None:
        raise NotFound("Request not found")
    return req


def _reload(session: Session, request_id: int) -> Optional[HelpRequest]:
    return session.exec(select(HelpRequest).where(HelpRequest.id == request_id)).first()


def _compare_and_set(
    session: Session, req: HelpRequest, actor: Actor, **values: Any
) -> HelpRequest:
    request_id = req.id
    seen_status = req.status
    seen_volunteer = req.assigned_volunteer_id
    stmt = (
        update(HelpRequest)
        .where(
            col(HelpRequest.id) == request_id,
            col(HelpRequest.status) == seen_status,
            # a None here compiles to IS NULL
            col(HelpRequest.assigned_volunteer_id) == seen_volunteer,
        )
        .values(**values)
    )
    result = session.exec(stmt)  # type: ignore[call-overload]
    if result.rowcount != 1:
        session.rollback()
        current = _reload(session, request_id)
        if current is None:
            raise NotFound("Request not found")
        logger.warning(
            "Lost update on request %s by user %s: expected %s, found %s",
            request_id,
            actor.id,
            seen_status.value,
            current.status.value,
        )
        raise Conflict(f"Request is already {current.status.value}.")

    session.commit()
    session.refresh(req)
    logger.info(
        "Request %s is now %s (actor=%s role=%s)",
        req.id,
        req.status.value,
        actor.id,
        actor.role.value,
    )
    return req


def create(
    session: Session,
    actor: Actor,
    title: Optional[str],
    description: Optional[str],
    category: Union[Category, str, None] = Category.OTHER,
) -> HelpRequest:
    if actor.role != Role.HELP_SEEKER:
        raise Forbidden("Only help seekers can create requests.")

    title = (title or "").strip()
    description = (description or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
    if not description:
        raise ValidationError("Description is required")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )
    try:
        category = Category(category)
    except ValueError:
        raise ValidationError("Please select a valid category") from None

    req = HelpRequest(
        requester_id=actor.id,
        title=title,
        description=description,
        category=category,
        status=RequestStatus.PENDING,
    )
    session.add(req)
    session.commit()
    session.refresh(req)
    logger.info("Request %s created by user %s", req.id, actor.id)
    return req


def accept(session: Session, request_id: Union[int, str], actor: Actor) -> HelpRequest:
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Only volunteers can accept requests.")
    req = get_request(session, request_id)

    if req.status != RequestStatus.PENDING:
        raise Conflict(f"Request is already {req.status.value}.")
    if req.assigned_volunteer_id is not None and req.assigned_volunteer_id != actor.id:
        raise Conflict("This request has already been accepted by another volunteer.")

    return _compare_and_set(
        session,
        req,
        actor,
        status=RequestStatus.ACCEPTED,
        assigned_volunteer_id=actor.id,
    )


def complete(session: Session, request_id: Union[int, str], actor: Actor) -> HelpRequest:
    req = get_request(session, request_id)

    if req.status != RequestStatus.ACCEPTED:
        raise Conflict(
            "Request must be accepted to be marked as completed. "
            f"It is currently {req.status.value}."
        )
    if req.assigned_volunteer_id != actor.id:
        raise NotAuthorized("Not authorized to complete this request.")

    # volunteer stays assigned so the review can credit them
    return _compare_and_set(session, req, actor, status=RequestStatus.COMPLETED)


def cancel(session: Session, request_id: Union[int, str], actor: Actor) -> HelpRequest:
    req = get_request(session, request_id)

    if req.requester_id != actor.id:
        raise NotAuthorized("Not authorized to cancel this request.")
    if req.status in TERMINAL_STATUSES:
        raise Conflict(
            f"Request is already {req.status.value} and cannot be cancelled."
        )

    return _compare_and_set(
        session,
        req,
        actor,
        status=RequestStatus.CANCELLED,
        assigned_volunteer_id=None,
    )


def unassign(session: Session, request_id: Union[int, str], actor: Actor) -> HelpRequest:
    req = get_request(session, request_id)

    if req.status != RequestStatus.ACCEPTED:
        raise Conflict(
            "Cannot unassign from a request that is not accepted. "
            f"It is currently {req.status.value}."
        )
    if req.assigned_volunteer_id != actor.id:
        raise NotAuthorized("Not authorized to unassign from this request.")

    return _compare_and_set(
        session,
        req,
        actor,
        status=RequestStatus.PENDING,
        assigned_volunteer_id=None,
    )


def _require_volunteer(session: Session, volunteer_id: int) -> User:
    volunteer = session.get(User, volunteer_id)
    if volunteer is None:
        raise NotFound("Volunteer not found")
    if volunteer.role != Role.VOLUNTEER:
        raise ValidationError("Assigned user must be a volunteer.")
    return volunteer


def admin_set_status(
    session: Session,
    request_id: Union[int, str],
    actor: Actor,
    status: Union[RequestStatus, str],
    volunteer_id: Optional[int] = None,
) -> HelpRequest:
    """
    Admin override: any status from any status.

    Moving to pending clears the volunteer. Moving an unassigned request to
    accepted needs a volunteer_id, otherwise the row would be accepted with
    nobody holding it. A reviewed request stays completed.
    """
    if actor.role != Role.ADMIN:
        raise Forbidden("Access denied. Not an admin.")
    try:
        new_status = RequestStatus(status)
    except ValueError:
        raise ValidationError("Invalid status provided.") from None

    req = get_request(session, request_id)

    if req.has_review and new_status != RequestStatus.COMPLETED:
        raise Conflict("Request has already been reviewed and must stay completed.")

    values: dict = {"status": new_status}
    if new_status == RequestStatus.PENDING:
        if volunteer_id is not None:
            raise ValidationError("Pending requests cannot have an assigned volunteer.")
        values["assigned_volunteer_id"] = None
    elif volunteer_id is not None:
        if new_status == RequestStatus.CANCELLED:
            raise ValidationError("Cancelled requests cannot be given a volunteer.")
        _require_volunteer(session, volunteer_id)
        values["assigned_volunteer_id"] = volunteer_id
    elif new_status == RequestStatus.ACCEPTED and req.assigned_volunteer_id is None:
        raise ValidationError(
            "A volunteer_id is required to mark an unassigned request as accepted."
        )

    return _compare_and_set(session, req, actor, **values)


def delete(session: Session, request_id: Union[int, str], actor: Actor) -> None:
    req = get_request(session, request_id)

    if req.requester_id != actor.id and actor.role != Role.ADMIN:
        raise NotAuthorized("User not authorized to delete this request.")

    deleted_id = req.id
    review = session.exec(select(Review).where(Review.help_request_id == deleted_id)).first()
    if review is not None:
        session.delete(review)
        session.flush()
    session.delete(req)
    session.commit()
    logger.info("Request %s deleted by user %s", deleted_id, actor.id)


def _newest_first(stmt):
    return stmt.order_by(col(HelpRequest.created_at).desc(), col(HelpRequest.id).desc())


def list_all(session: Session) -> List[HelpRequest]:
    return list(session.exec(_newest_first(select(HelpRequest))).all())


def list_pending(session: Session, actor: Actor) -> List[HelpRequest]:
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Access denied. Only volunteers can view pending requests.")
    stmt = select(HelpRequest).where(HelpRequest.status == RequestStatus.PENDING)
    return list(session.exec(_newest_first(stmt)).all())


def list_mine(session: Session, actor: Actor) -> List[HelpRequest]:
    if actor.role == Role.HELP_SEEKER:
        stmt = select(HelpRequest).where(HelpRequest.requester_id == actor.id)
    elif actor.role == Role.VOLUNTEER:
        stmt = select(HelpRequest).where(HelpRequest.assigned_volunteer_id == actor.id)
    else:
        raise Forbidden(
            "Access denied. Only help seekers and volunteers have their own requests."
        )
    return list(session.exec(_newest_first(stmt)).all())


def list_assigned_to_volunteer(session: Session, actor: Actor) -> List[HelpRequest]:
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Access denied. Only volunteers can view assigned requests.")
    stmt = select(HelpRequest).where(
        HelpRequest.assigned_volunteer_id == actor.id,
        col(HelpRequest.status).in_([RequestStatus.ACCEPTED, RequestStatus.COMPLETED]),
    )
    return list(session.exec(_newest_first(stmt)).all())


def list_volunteer_feed(session: Session, actor: Actor) -> List[HelpRequest]:
    """Open requests plus the ones this volunteer holds."""
    if actor.role != Role.VOLUNTEER:
        raise Forbidden("Access denied. Not a volunteer.")
    stmt = select(HelpRequest).where(
        or_(
            col(HelpRequest.status) == RequestStatus.PENDING,
            col(HelpRequest.assigned_volunteer_id) == actor.id,
        )
    )
    return list(session.exec(_newest_first(stmt)).all())

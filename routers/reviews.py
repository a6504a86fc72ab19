import logging
from typing import List

from fastapi import APIRouter
from sqlalchemy import func, update
from sqlmodel import col, select

import lifecycle
from db import SessionDep
from errors import Conflict, Forbidden, NotAuthorized, NotFound
from models import HelpRequest, RequestStatus, Review, Role, User
from schemas import ReviewCreate
from .auth import ActorDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reviews"])


@router.post("")
def submit_review(review_in: ReviewCreate, session: SessionDep, actor: ActorDep):
    """
    Review the volunteer of a completed request. One review per request:
    has_review is flipped with a conditional write before the review row is
    inserted, so only one of several concurrent submissions gets through.
    """
    if actor.role != Role.HELP_SEEKER:
        raise Forbidden("Access denied. Not a help seeker.")

    help_request = session.get(HelpRequest, review_in.help_request_id)
    if help_request is None:
        raise NotFound("Help request not found.")
    if help_request.status != RequestStatus.COMPLETED:
        raise Conflict(
            "Only completed requests can be reviewed. "
            f"This one is {help_request.status.value}."
        )
    if help_request.requester_id != actor.id:
        raise NotAuthorized("Not authorized to review this request.")
    if help_request.assigned_volunteer_id is None:
        raise Conflict("Cannot review a request without an assigned volunteer.")
    if help_request.has_review:
        raise Conflict("This request has already been reviewed.")

    claimed = session.exec(  # type: ignore[call-overload]
        update(HelpRequest)
        .where(
            col(HelpRequest.id) == help_request.id,
            col(HelpRequest.status) == RequestStatus.COMPLETED,
            col(HelpRequest.has_review).is_(False),
        )
        .values(has_review=True)
    )
    if claimed.rowcount != 1:
        session.rollback()
        logger.warning("Duplicate review submission for request %s", review_in.help_request_id)
        raise Conflict("This request has already been reviewed.")

    review = Review(
        help_request_id=help_request.id,
        reviewer_id=actor.id,
        reviewed_volunteer_id=help_request.assigned_volunteer_id,
        rating=review_in.rating,
        comment=review_in.comment,
    )
    session.add(review)
    session.commit()
    session.refresh(review)
    logger.info(
        "Review %s for request %s by user %s",
        review.id,
        review.help_request_id,
        actor.id,
    )
    return {"msg": "Review submitted successfully!", "review": review}


@router.get("/volunteer/{volunteer_id}")
def list_volunteer_reviews(volunteer_id: int, session: SessionDep, actor: ActorDep):
    volunteer = session.get(User, volunteer_id)
    if volunteer is None or volunteer.role != Role.VOLUNTEER:
        raise NotFound("Volunteer not found")

    reviews: List[Review] = list(
        session.exec(
            select(Review)
            .where(Review.reviewed_volunteer_id == volunteer_id)
            .order_by(col(Review.created_at).desc(), col(Review.id).desc())
        ).all()
    )
    average = session.exec(
        select(func.avg(Review.rating)).where(Review.reviewed_volunteer_id == volunteer_id)
    ).one()
    return {
        "volunteer_id": volunteer_id,
        "average_rating": round(float(average), 2) if average is not None else None,
        "count": len(reviews),
        "reviews": reviews,
    }


@router.get("/request/{request_id}")
def get_request_review(request_id: str, session: SessionDep, actor: ActorDep):
    req = lifecycle.get_request(session, request_id)
    review = session.exec(select(Review).where(Review.help_request_id == req.id)).first()
    if review is None:
        raise NotFound("Review not found")
    return review

import pytest
from sqlmodel import Session, select

import lifecycle
from errors import Conflict
from models import HelpRequest, Review
from routers.reviews import submit_review
from schemas import ReviewCreate


@pytest.fixture
def completed(engine, seeker, volunteer, as_actor):
    with Session(engine) as s:
        rid = lifecycle.create(s, as_actor(seeker), "Groceries", "Weekly shop", "Groceries").id
        lifecycle.accept(s, rid, as_actor(volunteer))
        lifecycle.complete(s, rid, as_actor(volunteer))
    return rid


def test_review_once(client, headers, seeker, volunteer, completed, engine):
    body = {"help_request_id": completed, "rating": 5, "comment": "Very kind"}

    resp = client.post("/reviews", json=body, headers=headers(seeker))
    assert resp.status_code == 200
    assert resp.json()["msg"] == "Review submitted successfully!"
    assert resp.json()["review"]["reviewed_volunteer_id"] == volunteer.id

    with Session(engine) as s:
        assert s.get(HelpRequest, completed).has_review is True

    resp = client.post("/reviews", json=body, headers=headers(seeker))
    assert resp.status_code == 400
    assert resp.json() == {"msg": "This request has already been reviewed."}


def test_review_requires_completed_request(client, headers, seeker, engine, as_actor):
    with Session(engine) as s:
        rid = lifecycle.create(s, as_actor(seeker), "Chat", "Someone to talk to", "Emotional Support").id

    resp = client.post(
        "/reviews", json={"help_request_id": rid, "rating": 4}, headers=headers(seeker)
    )
    assert resp.status_code == 400
    assert "pending" in resp.json()["msg"]


def test_review_only_by_requester(client, headers, other_seeker, volunteer, completed):
    body = {"help_request_id": completed, "rating": 3}
    assert client.post("/reviews", json=body, headers=headers(other_seeker)).status_code == 401
    assert client.post("/reviews", json=body, headers=headers(volunteer)).status_code == 403


def test_review_rating_bounds(client, headers, seeker, completed):
    for rating in (0, 6):
        resp = client.post(
            "/reviews",
            json={"help_request_id": completed, "rating": rating},
            headers=headers(seeker),
        )
        assert resp.status_code == 400


def test_review_unknown_request(client, headers, seeker):
    resp = client.post(
        "/reviews", json={"help_request_id": 777, "rating": 4}, headers=headers(seeker)
    )
    assert resp.status_code == 404


def test_concurrent_review_creates_one_row(engine, seeker, completed, as_actor):
    with Session(engine, expire_on_commit=False) as stale:
        # this submission read the request before the other one landed
        assert stale.get(HelpRequest, completed).has_review is False
        stale.commit()

        with Session(engine) as other:
            submit_review(
                ReviewCreate(help_request_id=completed, rating=5),
                session=other,
                actor=as_actor(seeker),
            )

        with pytest.raises(Conflict):
            submit_review(
                ReviewCreate(help_request_id=completed, rating=1),
                session=stale,
                actor=as_actor(seeker),
            )

    with Session(engine) as check:
        reviews = check.exec(select(Review)).all()
        assert len(reviews) == 1
        assert reviews[0].rating == 5


def test_volunteer_reviews_summary(client, headers, seeker, volunteer, completed):
    client.post(
        "/reviews", json={"help_request_id": completed, "rating": 4}, headers=headers(seeker)
    )
    resp = client.get(f"/reviews/volunteer/{volunteer.id}", headers=headers(seeker))
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["average_rating"] == 4.0

    resp = client.get(f"/reviews/request/{completed}", headers=headers(volunteer))
    assert resp.status_code == 200
    assert resp.json()["rating"] == 4

    resp = client.get(f"/reviews/volunteer/{seeker.id}", headers=headers(seeker))
    assert resp.status_code == 404

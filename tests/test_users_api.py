from sqlmodel import Session

from models import User


def test_list_volunteers(client, headers, seeker, volunteer, other_volunteer):
    resp = client.get("/users/volunteers", headers=headers(seeker))
    assert resp.status_code == 200
    assert [u["name"] for u in resp.json()] == ["Bob", "Carol"]


def test_volunteer_profile_create_and_update(client, headers, seeker, volunteer):
    resp = client.get("/users/me/profile", headers=headers(volunteer))
    assert resp.status_code == 404

    body = {
        "bio": "Retired driver",
        "skills": ["Driving", " Cooking "],
        "availability": ["Weekends"],
        "location": {"city": "Leeds"},
    }
    resp = client.post("/users/me/profile", json=body, headers=headers(volunteer))
    assert resp.status_code == 200
    assert resp.json()["msg"] == "Volunteer profile created!"
    assert resp.json()["profile"]["skills"] == ["Driving", "Cooking"]

    body["availability"] = ["Evenings"]
    resp = client.post("/users/me/profile", json=body, headers=headers(volunteer))
    assert resp.json()["msg"] == "Volunteer profile updated!"

    resp = client.get("/users/me/profile", headers=headers(volunteer))
    assert resp.json()["availability"] == ["Evenings"]
    assert resp.json()["city"] == "Leeds"

    public = client.get(f"/users/{volunteer.id}/profile", headers=headers(seeker)).json()
    assert public["user"]["role"] == "volunteer"
    assert public["profile"]["bio"] == "Retired driver"


def test_profile_requires_volunteer_and_fields(client, headers, seeker, volunteer):
    body = {"bio": "Hi", "skills": ["Listening"], "availability": ["Mornings"]}
    assert client.post("/users/me/profile", json=body, headers=headers(seeker)).status_code == 403

    body["skills"] = []
    assert client.post("/users/me/profile", json=body, headers=headers(volunteer)).status_code == 400


def test_public_profile_of_seeker_has_no_profile(client, headers, seeker, volunteer):
    resp = client.get(f"/users/{seeker.id}/profile", headers=headers(volunteer))
    assert resp.status_code == 200
    assert resp.json()["profile"] is None
    assert client.get("/users/999/profile", headers=headers(volunteer)).status_code == 404


def test_delete_own_account(client, headers, engine, other_seeker):
    resp = client.delete("/users/me", headers=headers(other_seeker))
    assert resp.status_code == 204
    with Session(engine) as s:
        assert s.get(User, other_seeker.id) is None


def test_lodge_complaint(client, headers, seeker, volunteer, other_seeker):
    body = {"against_volunteer_id": volunteer.id, "title": "Late", "description": "Late twice"}
    resp = client.post("/complaints", json=body, headers=headers(seeker))
    assert resp.status_code == 200
    assert resp.json()["complaint"]["status"] == "pending"

    mine = client.get("/complaints/mine", headers=headers(seeker)).json()
    assert len(mine) == 1
    assert client.get("/complaints/mine", headers=headers(other_seeker)).json() == []

    assert client.post("/complaints", json=body, headers=headers(volunteer)).status_code == 403

    body["against_volunteer_id"] = other_seeker.id
    assert client.post("/complaints", json=body, headers=headers(seeker)).status_code == 400

    body["against_volunteer_id"] = 999
    assert client.post("/complaints", json=body, headers=headers(seeker)).status_code == 404

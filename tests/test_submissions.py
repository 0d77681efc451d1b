import pytest

from hackhub.db.documents import SUBMISSIONS


@pytest.fixture()
def team_id(client, headers, seed_data):
    r = client.post("/teams", json={"team_name": "Builders", "event_id": seed_data["event"]}, headers=headers("alice"))
    team_id = r.json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    return team_id


def submit(client, headers, event_id: int, team_id: int, round: int = 1):
    return client.post(
        "/submissions",
        json={
            "event_id": event_id,
            "team_id": team_id,
            "title": "Carbon Tracker",
            "description": "Tracks household emissions in real time.",
            "track": "Climate",
            "github_url": "https://github.com/example/carbon",
            "round": round,
        },
        headers=headers,
    )


JUDGEMENT = {
    "scores": {"innovation": 9, "technical": 8.5, "presentation": 8, "impact": 9.2, "overall": 8},
    "total_score": 42.7,
    "judge_comments": "Strong demo",
    "is_winner": True,
    "prize": "1st Place",
}


def test_member_submits_once_per_round(client, headers, seed_data, team_id):
    r = submit(client, headers("bob"), seed_data["event"], team_id)
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["judging_status"] == "pending"
    assert data["github_url"] == "https://github.com/example/carbon"

    r = submit(client, headers("alice"), seed_data["event"], team_id)
    assert r.status_code == 409
    assert r.json()["message"] == "Team already has a submission for round 1 of this event"

    assert submit(client, headers("alice"), seed_data["event"], team_id, round=2).status_code == 201


def test_non_member_cannot_submit(client, headers, seed_data, team_id):
    r = submit(client, headers("carol"), seed_data["event"], team_id)
    assert r.status_code == 403
    assert r.json()["message"] == "You are not a member of this team"


def test_submission_references_are_validated(client, headers, seed_data, docs):
    r = submit(client, headers("alice"), 777, 888)
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Validation failed"
    assert [e["message"] for e in body["errors"]] == [
        "Event with ID 777 does not exist",
        "Team with ID 888 does not exist",
    ]
    assert docs[SUBMISSIONS].count_documents({}) == 0


def test_owning_organizer_judges_submission(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.patch(f"/submissions/{submission_id}/judge", json=JUDGEMENT, headers=headers("organizer"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Submission judged successfully"
    data = body["data"]
    assert data["judging_status"] == "judged"
    assert data["prize"] == "1st Place"
    assert data["is_winner"] is True
    assert data["total_score"] == pytest.approx(42.7)
    assert data["judge_id"] == seed_data["organizer"]
    assert data["judged_at"] is not None


def test_other_organizer_cannot_judge(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.patch(f"/submissions/{submission_id}/judge", json=JUDGEMENT, headers=headers("organizer2"))
    assert r.status_code == 403
    assert r.json()["message"] == "You are not authorized to judge this submission"


def test_judge_role_may_judge_any_event(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.patch(
        f"/submissions/{submission_id}/judge",
        json={**JUDGEMENT, "is_winner": False},
        headers=headers("judge"),
    )
    assert r.status_code == 200
    # a prize is only kept for winners
    assert r.json()["data"]["prize"] is None


def test_participants_cannot_judge(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]
    r = client.patch(f"/submissions/{submission_id}/judge", json=JUDGEMENT, headers=headers("alice"))
    assert r.status_code == 403
    assert r.json()["message"] == "Insufficient permissions"


def test_judging_requires_scores(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.patch(f"/submissions/{submission_id}/judge", json={"is_winner": True}, headers=headers("organizer"))
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"scores", "total_score"} <= fields

    bad = {**JUDGEMENT, "scores": {"innovation": 11}}
    r = client.patch(f"/submissions/{submission_id}/judge", json=bad, headers=headers("organizer"))
    assert r.status_code == 400


def test_unknown_or_malformed_submission_id(client, headers):
    r = client.get("/submissions/64b7f0c2a1b2c3d4e5f60718", headers=headers("judge"))
    assert r.status_code == 404
    assert r.json()["message"] == "Submission not found"

    r = client.get("/submissions/not-an-id", headers=headers("judge"))
    assert r.status_code == 400


def test_only_leader_deletes_submission(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("bob"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.delete(f"/submissions/{submission_id}", headers=headers("bob"))
    assert r.status_code == 403
    assert r.json()["message"] == "Only team leaders can delete submissions"

    r = client.delete(f"/submissions/{submission_id}", headers=headers("alice"))
    assert r.status_code == 200


def test_update_submission_keeps_identity_fields(client, headers, seed_data, team_id):
    submission_id = submit(client, headers("alice"), seed_data["event"], team_id).json()["data"]["id"]

    r = client.patch(
        f"/submissions/{submission_id}",
        json={"title": "Carbon Tracker 2", "event_id": 99, "team_id": 99},
        headers=headers("bob"),
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["title"] == "Carbon Tracker 2"
    assert data["event_id"] == seed_data["event"]
    assert data["team_id"] == team_id


def test_submission_listings(client, headers, seed_data, team_id):
    submit(client, headers("alice"), seed_data["event"], team_id)

    r = client.get("/submissions", headers=headers("organizer"))
    assert r.status_code == 200
    assert [s["team_name"] for s in r.json()["data"]] == ["Builders"]
    assert r.json()["data"][0]["leader_name"] == "Alice"

    r = client.get("/submissions", headers=headers("organizer2"))
    assert r.json()["data"] == []

    r = client.get("/submissions", headers=headers("alice"))
    assert r.status_code == 403

    r = client.get(f"/submissions/event/{seed_data['event']}?round=1", headers=headers("judge"))
    assert len(r.json()["data"]) == 1

    r = client.get(f"/submissions/team/{team_id}", headers=headers("carol"))
    assert r.status_code == 403

    r = client.get("/submissions/my-submissions", headers=headers("bob"))
    assert len(r.json()["data"]) == 1

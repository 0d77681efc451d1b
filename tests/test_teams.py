from hackhub.models.enrollment import Enrollment, EnrollmentStatus
from hackhub.models.event import Event
from hackhub.models.team import Team, TeamMember, TeamRole
from hackhub.routers import teams as teams_router


def create_team(client, headers, event_id: int, name: str = "Foo"):
    return client.post("/teams", json={"team_name": name, "event_id": event_id}, headers=headers)


def enrollment_for(db, event_id: int, user_id: int) -> Enrollment:
    return (
        db.query(Enrollment)
        .filter(Enrollment.event_id == event_id, Enrollment.user_id == user_id)
        .first()
    )


def test_create_join_and_capacity(client, headers, seed_data, db_session):
    r = create_team(client, headers("alice"), seed_data["event"])
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Team created successfully"
    team_id = body["data"]["id"]

    assert enrollment_for(db_session, seed_data["event"], seed_data["alice"]).team_id == team_id

    r = client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["member_count"] == 2

    r = client.post(f"/teams/{team_id}/join", headers=headers("carol"))
    assert r.status_code == 409
    body = r.json()
    assert body["success"] is False
    assert body["message"].startswith("Team is full")

    assert db_session.query(TeamMember).filter(TeamMember.team_id == team_id).count() == 2


def test_get_team_round_trip_lists_leader_only(client, headers, seed_data):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]

    r = client.get(f"/teams/{team_id}", headers=headers("carol"))
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["member_count"] == 1
    assert data["event_name"] == "Spring Hack"
    assert data["max_team_size"] == 2
    assert [(m["user_id"], m["role"]) for m in data["members"]] == [(seed_data["alice"], "Leader")]


def test_members_listed_leader_first(client, headers, seed_data):
    # "Bob" sorts before "Carol" but after the leader regardless of name
    team_id = create_team(client, headers("carol"), seed_data["other_event"], "Zed").json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    client.post(f"/teams/{team_id}/join", headers=headers("alice"))

    members = client.get(f"/teams/{team_id}", headers=headers("bob")).json()["data"]["members"]
    assert [m["name"] for m in members] == ["Carol", "Alice", "Bob"]
    assert [m["role"] for m in members].count("Leader") == 1


def test_duplicate_team_name_in_event_is_conflict(client, headers, seed_data):
    assert create_team(client, headers("alice"), seed_data["event"]).status_code == 201

    r = create_team(client, headers("bob"), seed_data["event"], "foo")
    assert r.status_code == 409
    assert r.json()["message"] == "Team name already exists for this event"

    # same name in a different event is fine
    assert create_team(client, headers("bob"), seed_data["other_event"]).status_code == 201


def test_one_team_per_user_per_event(client, headers, seed_data):
    first = create_team(client, headers("alice"), seed_data["event"], "First").json()["data"]["id"]
    second = create_team(client, headers("bob"), seed_data["event"], "Second").json()["data"]["id"]

    r = create_team(client, headers("alice"), seed_data["event"], "Third")
    assert r.status_code == 409
    assert r.json()["message"] == "You are already part of a team for this event"

    r = client.post(f"/teams/{second}/join", headers=headers("alice"))
    assert r.status_code == 409

    r = client.post(f"/teams/{first}/join", headers=headers("alice"))
    assert r.status_code == 409


def test_create_team_for_missing_or_inactive_event(client, headers, seed_data, db_session):
    r = create_team(client, headers("alice"), 9999)
    assert r.status_code == 404
    assert r.json()["message"] == "Event not found or inactive"

    event = db_session.get(Event, seed_data["event"])
    event.is_active = False
    db_session.commit()

    r = create_team(client, headers("alice"), seed_data["event"])
    assert r.status_code == 404


def test_team_name_validation(client, headers, seed_data):
    r = create_team(client, headers("alice"), seed_data["event"], " ")
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Validation failed"
    assert body["errors"][0]["field"] == "team_name"


def test_sole_leader_leaving_disbands_team(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]

    r = client.post(f"/teams/{team_id}/leave", headers=headers("alice"))
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Team disbanded as leader left"

    assert db_session.get(Team, team_id) is None
    assert db_session.query(TeamMember).filter(TeamMember.team_id == team_id).count() == 0
    assert enrollment_for(db_session, seed_data["event"], seed_data["alice"]).team_id is None


def test_leader_cannot_leave_with_members(client, headers, seed_data):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))

    r = client.post(f"/teams/{team_id}/leave", headers=headers("alice"))
    assert r.status_code == 409
    assert r.json()["message"].startswith("Team leader cannot leave while there are other members")


def test_member_leave_clears_enrollment_link(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id == team_id

    r = client.post(f"/teams/{team_id}/leave", headers=headers("bob"))
    assert r.status_code == 200
    assert r.json()["message"] == "Successfully left the team"

    db_session.expire_all()
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id is None
    assert db_session.get(Team, team_id) is not None


def test_leave_when_not_member(client, headers, seed_data):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    r = client.post(f"/teams/{team_id}/leave", headers=headers("bob"))
    assert r.status_code == 404
    assert r.json()["message"] == "You are not a member of this team"


def test_remove_member_rules(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))

    r = client.delete(f"/teams/{team_id}/members/{seed_data['alice']}", headers=headers("bob"))
    assert r.status_code == 403
    assert r.json()["message"] == "Only team leader can remove members"

    r = client.delete(f"/teams/{team_id}/members/{seed_data['carol']}", headers=headers("alice"))
    assert r.status_code == 404
    assert r.json()["message"] == "Member not found in team"

    r = client.delete(f"/teams/{team_id}/members/{seed_data['alice']}", headers=headers("alice"))
    assert r.status_code == 403
    assert r.json()["message"] == "Cannot remove team leader"

    r = client.delete(f"/teams/{team_id}/members/{seed_data['bob']}", headers=headers("alice"))
    assert r.status_code == 200
    assert r.json()["message"] == "Member removed successfully"

    db_session.expire_all()
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id is None
    leaders = (
        db_session.query(TeamMember)
        .filter(TeamMember.team_id == team_id, TeamMember.role == TeamRole.LEADER)
        .count()
    )
    assert leaders == 1

    # the freed slot can be taken again
    assert client.post(f"/teams/{team_id}/join", headers=headers("carol")).status_code == 200


def test_creating_team_without_enrollment_enrolls_the_creator(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("carol"), seed_data["event"]).json()["data"]["id"]

    enrollment = enrollment_for(db_session, seed_data["event"], seed_data["carol"])
    assert enrollment is not None
    assert enrollment.status == EnrollmentStatus.ENROLLED
    assert enrollment.team_id == team_id


def test_cancelled_enrollment_is_not_linked_on_join(client, headers, seed_data, db_session):
    client.post(f"/events/{seed_data['event']}/cancel", headers=headers("bob"))
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]

    r = client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    assert r.status_code == 200

    enrollment = enrollment_for(db_session, seed_data["event"], seed_data["bob"])
    assert enrollment.status == EnrollmentStatus.CANCELLED
    assert enrollment.team_id is None


def test_update_and_delete_team_are_leader_only(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    create_team(client, headers("carol"), seed_data["event"], "Taken")

    r = client.put(f"/teams/{team_id}", json={"team_name": "Bar"}, headers=headers("bob"))
    assert r.status_code == 403
    assert r.json()["message"] == "Only team leader can update team details"

    r = client.put(f"/teams/{team_id}", json={"team_name": "Taken"}, headers=headers("alice"))
    assert r.status_code == 409

    r = client.put(f"/teams/{team_id}", json={"team_name": "Bar"}, headers=headers("alice"))
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Bar"

    r = client.delete(f"/teams/{team_id}", headers=headers("bob"))
    assert r.status_code == 403
    assert r.json()["message"] == "Only team leader can delete the team"

    r = client.delete(f"/teams/{team_id}", headers=headers("alice"))
    assert r.status_code == 200
    assert r.json()["message"] == "Team deleted successfully"

    db_session.expire_all()
    assert db_session.get(Team, team_id) is None
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id is None


def test_event_teams_are_paginated_with_member_counts(client, headers, seed_data):
    team_id = create_team(client, headers("alice"), seed_data["event"], "One").json()["data"]["id"]
    client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    create_team(client, headers("carol"), seed_data["event"], "Two")

    r = client.get(f"/teams/event/{seed_data['event']}?page=1&limit=1", headers=headers("judge"))
    assert r.status_code == 200, r.text
    body = r.json()
    assert len(body["data"]) == 1
    assert body["pagination"]["total_items"] == 2
    assert body["pagination"]["total_pages"] == 2
    assert body["pagination"]["has_next_page"] is True
    assert body["pagination"]["next_page"] == 2

    r = client.get(f"/teams/event/{seed_data['event']}?limit=10", headers=headers("judge"))
    by_name = {t["name"]: t["member_details"] for t in r.json()["data"]}
    assert by_name["One"] == {"total": 2, "leaders": 1, "members": 1}
    assert by_name["Two"] == {"total": 1, "leaders": 1, "members": 0}


def test_my_teams(client, headers, seed_data):
    create_team(client, headers("alice"), seed_data["event"], "Mine")
    create_team(client, headers("alice"), seed_data["other_event"], "Also Mine")

    r = client.get("/teams/my-teams", headers=headers("alice"))
    assert r.status_code == 200
    teams = {t["name"]: t for t in r.json()["data"]}
    assert set(teams) == {"Mine", "Also Mine"}
    assert teams["Mine"]["my_role"] == "Leader"
    assert teams["Mine"]["member_count"] == 1


def test_unknown_team_is_not_found(client, headers):
    r = client.post("/teams/4242/join", headers=headers("alice"))
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Team not found"}


def test_create_team_race_on_membership_leaves_no_orphan_team(client, headers, seed_data, db_session, monkeypatch):
    create_team(client, headers("alice"), seed_data["event"], "First")
    # the precheck misses alice's existing team, as it would for a concurrent request
    monkeypatch.setattr(teams_router, "_team_for_event", lambda db, event_id, user_id: None)

    r = create_team(client, headers("alice"), seed_data["event"], "Second")
    assert r.status_code == 409
    assert r.json()["message"] == teams_router.ALREADY_ON_TEAM

    names = [t.name for t in db_session.query(Team).filter(Team.event_id == seed_data["event"])]
    assert names == ["First"]


def test_create_team_race_on_name_reports_name_taken(client, headers, seed_data, db_session, monkeypatch):
    create_team(client, headers("alice"), seed_data["event"], "Foo")

    real_name_taken = teams_router._name_taken
    calls = []

    def name_free_on_first_check(db, event_id, name, exclude_team_id=None):
        calls.append(name)
        if len(calls) == 1:
            return False
        return real_name_taken(db, event_id, name, exclude_team_id)

    monkeypatch.setattr(teams_router, "_name_taken", name_free_on_first_check)

    r = create_team(client, headers("bob"), seed_data["event"], "Foo")
    assert r.status_code == 409
    assert r.json()["message"] == teams_router.NAME_TAKEN

    assert db_session.query(Team).filter(Team.event_id == seed_data["event"]).count() == 1
    assert (
        db_session.query(TeamMember)
        .filter(TeamMember.event_id == seed_data["event"], TeamMember.user_id == seed_data["bob"])
        .first()
        is None
    )
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id is None


def test_join_race_keeps_user_on_one_team(client, headers, seed_data, db_session, monkeypatch):
    first = create_team(client, headers("alice"), seed_data["event"], "First").json()["data"]["id"]
    second = create_team(client, headers("carol"), seed_data["event"], "Second").json()["data"]["id"]
    assert client.post(f"/teams/{first}/join", headers=headers("bob")).status_code == 200

    monkeypatch.setattr(teams_router, "_team_for_event", lambda db, event_id, user_id: None)

    r = client.post(f"/teams/{second}/join", headers=headers("bob"))
    assert r.status_code == 409
    assert r.json()["message"] == teams_router.ALREADY_ON_TEAM

    rows = (
        db_session.query(TeamMember)
        .filter(TeamMember.event_id == seed_data["event"], TeamMember.user_id == seed_data["bob"])
        .all()
    )
    assert [m.team_id for m in rows] == [first]
    assert enrollment_for(db_session, seed_data["event"], seed_data["bob"]).team_id == first
    assert db_session.query(TeamMember).filter(TeamMember.team_id == second).count() == 1


def test_join_inactive_event_team_is_rejected(client, headers, seed_data, db_session):
    team_id = create_team(client, headers("alice"), seed_data["event"]).json()["data"]["id"]
    event = db_session.get(Event, seed_data["event"])
    event.is_active = False
    db_session.commit()

    r = client.post(f"/teams/{team_id}/join", headers=headers("bob"))
    assert r.status_code == 404
    assert r.json()["message"] == "Event not found or inactive"


def test_team_name_is_trimmed_before_length_check(client, headers, seed_data):
    name = "x" * 50
    r = create_team(client, headers("alice"), seed_data["event"], f"  {name}  ")
    assert r.status_code == 201, r.text
    assert r.json()["data"]["name"] == name

    r = create_team(client, headers("bob"), seed_data["event"], "y" * 51)
    assert r.status_code == 400

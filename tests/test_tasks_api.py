"""Integration tests for /tasks: scoring and points on status and property changes."""

from datetime import datetime, timedelta

from taskup.models.notification import Notification
from taskup.models.points import PointTransaction, TASK_PROPERTY_CHANGED, TASK_UNCOMPLETED
from taskup.points.calculator import points_with_timing_bonus
from taskup.points.points_service import total_points


def create_task(client, headers, **payload):
    payload.setdefault("title", "Ship it")
    response = client.post("/tasks/", json=payload, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()


class TestTaskCrud:

    def test_create_starts_at_base_score(self, client, alice, bob, auth_headers):
        task = create_task(client, auth_headers(alice), difficulty="hard", assignee_ids=[alice.id, bob.id])

        assert task["status"] == "todo"
        assert task["score"] == 30
        assert task["assignee_ids"] == [alice.id, bob.id]
        assert task["completed_at"] is None

    def test_list_and_filter(self, client, alice, auth_headers):
        headers = auth_headers(alice)
        create_task(client, headers, title="A")
        create_task(client, headers, title="B", status="in_progress")

        all_tasks = client.get("/tasks/", headers=headers).json()
        in_progress = client.get("/tasks/", params={"status": "in_progress"}, headers=headers).json()

        assert {t["title"] for t in all_tasks} == {"A", "B"}
        assert [t["title"] for t in in_progress] == ["B"]

    def test_unknown_assignee_is_rejected(self, client, alice, auth_headers):
        response = client.post("/tasks/", json={"title": "x", "assignee_ids": [999]}, headers=auth_headers(alice))

        assert response.status_code == 400
        assert "999" in response.json()["error"]

    def test_invalid_enum_value(self, client, alice, auth_headers):
        response = client.post("/tasks/", json={"title": "x", "difficulty": "insane"}, headers=auth_headers(alice))

        assert response.status_code == 422
        assert "difficulty" in response.json()["error"]

    def test_task_from_other_org_is_not_found(self, client, db, alice, auth_headers, make_task):
        from taskup.models.organization import Organization

        other = Organization(name="Other", slug="other")
        db.add(other)
        db.commit()
        task = make_task(organization_id=other.id)

        response = client.get(f"/tasks/{task.id}", headers=auth_headers(alice))

        assert response.status_code == 404
        assert response.json() == {"error": "Task not found"}

    def test_delete_keeps_ledger_history(self, client, db, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        response = client.delete(f"/tasks/{task['id']}", headers=headers)

        assert response.status_code == 204
        rows = db.query(PointTransaction).all()
        assert len(rows) == 1
        assert rows[0].task_id is None
        assert total_points(db, alice.id, alice.active_organization_id) == 20


class TestAuthContext:

    def test_missing_token(self, client):
        response = client.get("/tasks/")

        assert response.status_code == 401
        assert "error" in response.json()

    def test_bad_token(self, client):
        response = client.get("/tasks/", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_no_active_organization(self, client, db, alice, auth_headers):
        alice.active_organization_id = None
        db.commit()

        response = client.get("/tasks/", headers=auth_headers(alice))

        assert response.status_code == 401
        assert response.json() == {"error": "No active organization"}


class TestStatusChanges:

    def test_done_awards_points_split_between_assignees(self, client, db, org, alice, bob, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, difficulty="hard", assignee_ids=[alice.id, bob.id])

        response = client.patch(f"/tasks/{task['id']}/status", json={"status": "done"}, headers=headers)

        body = response.json()
        assert response.status_code == 200
        assert body["score"] == 30
        assert body["completed_at"] is not None
        assert total_points(db, alice.id, org.id) == 15
        assert total_points(db, bob.id, org.id) == 15

    def test_done_applies_due_date_multiplier(self, client, db, org, alice, auth_headers):
        headers = auth_headers(alice)
        due = datetime.utcnow() + timedelta(days=7)
        task = create_task(client, headers, assignee_ids=[alice.id], due_date=due.isoformat())

        body = client.patch(f"/tasks/{task['id']}/status", json={"status": "done"}, headers=headers).json()

        expected = points_with_timing_bonus(20, due, datetime.utcnow())
        assert body["score"] == expected
        assert total_points(db, alice.id, org.id) == expected

    def test_reopening_takes_points_back_and_resets_score(self, client, db, org, alice, bob, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id, bob.id], status="done")
        assert total_points(db, alice.id, org.id) == 10

        body = client.patch(f"/tasks/{task['id']}/status", json={"status": "in_progress"}, headers=headers).json()

        assert body["score"] == 20
        assert body["completed_at"] is None
        assert total_points(db, alice.id, org.id) == 0
        assert total_points(db, bob.id, org.id) == 0
        last = db.query(PointTransaction).order_by(PointTransaction.id.desc()).first()
        assert last.transaction_type == TASK_UNCOMPLETED

    def test_archiving_a_done_task_counts_as_leaving_done(self, client, db, org, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        client.patch(f"/tasks/{task['id']}/status", json={"status": "archived"}, headers=headers)

        assert total_points(db, alice.id, org.id) == 0

    def test_moving_between_open_states_books_nothing(self, client, db, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id])

        for status in ("in_progress", "review", "todo"):
            client.patch(f"/tasks/{task['id']}/status", json={"status": status}, headers=headers)

        assert db.query(PointTransaction).count() == 0

    def test_setting_done_twice_awards_once(self, client, db, org, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        client.patch(f"/tasks/{task['id']}/status", json={"status": "done"}, headers=headers)

        assert total_points(db, alice.id, org.id) == 20

    def test_completion_notifies_assignees(self, client, db, alice, bob, auth_headers):
        create_task(client, auth_headers(alice), assignee_ids=[alice.id, bob.id], status="done")

        titles = [n.title for n in db.query(Notification).filter(Notification.user_id == bob.id)]
        assert titles == ["You earned 10 points"]


class TestPropertyChanges:

    def test_difficulty_change_on_done_task_adjusts_points(self, client, db, org, alice, bob, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id, bob.id], status="done")

        body = client.patch(f"/tasks/{task['id']}", json={"difficulty": "hard"}, headers=headers).json()

        assert body["score"] == 30
        assert total_points(db, alice.id, org.id) == 15
        assert total_points(db, bob.id, org.id) == 15
        adjustments = db.query(PointTransaction).filter(
            PointTransaction.transaction_type == TASK_PROPERTY_CHANGED
        ).all()
        assert [row.points_change for row in adjustments] == [5, 5]

    def test_priority_change_on_done_task_books_nothing(self, client, db, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        body = client.patch(f"/tasks/{task['id']}", json={"priority": "urgent"}, headers=headers).json()

        assert body["priority"] == "urgent"
        assert body["score"] == 20
        assert db.query(PointTransaction).count() == 1

    def test_due_date_change_on_done_task_uses_completion_date(self, client, db, org, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")
        completed_at = datetime.fromisoformat(task["completed_at"])
        due = completed_at - timedelta(days=1)

        body = client.patch(f"/tasks/{task['id']}", json={"due_date": due.isoformat()}, headers=headers).json()

        assert body["score"] == 23
        assert total_points(db, alice.id, org.id) == 23

    def test_difficulty_change_on_open_task_refreshes_base(self, client, db, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id])

        body = client.patch(f"/tasks/{task['id']}", json={"difficulty": "easy"}, headers=headers).json()

        assert body["score"] == 10
        assert db.query(PointTransaction).count() == 0

    def test_due_date_change_notifies_assignees(self, client, db, alice, bob, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, title="Report", assignee_ids=[alice.id, bob.id])

        client.patch(f"/tasks/{task['id']}", json={"due_date": "2026-05-01T12:00:00"}, headers=headers)

        notes = db.query(Notification).filter(Notification.title == "Deadline updated").all()
        assert {n.user_id for n in notes} == {alice.id, bob.id}
        assert "2026-05-01" in notes[0].message

    def test_clearing_due_date(self, client, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, due_date="2026-05-01T00:00:00")

        body = client.patch(f"/tasks/{task['id']}", json={"due_date": None}, headers=headers).json()

        assert body["due_date"] is None

    def test_reopen_with_edits_deducts_what_was_awarded(self, client, db, org, alice, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        body = client.patch(
            f"/tasks/{task['id']}",
            json={"status": "todo", "difficulty": "hard"},
            headers=headers,
        ).json()

        assert body["score"] == 30
        assert total_points(db, alice.id, org.id) == 0


class TestPointsPreview:

    def test_preview_without_due_date(self, client, alice, bob, auth_headers):
        headers = auth_headers(alice)
        task = create_task(client, headers, difficulty="hard", assignee_ids=[alice.id, bob.id])

        body = client.get(f"/tasks/{task['id']}/points-preview", headers=headers).json()

        assert body["base_score"] == 30
        assert body["multiplier"] == 1.0
        assert body["projected_score"] == 30
        assert body["points_per_assignee"] == 15
        assert body["explanation"] == "No due date set. Full points awarded: 30 pts"


class TestAssigneeEdgeCases:

    def test_zero_share_is_booked_but_not_announced(self, client, db, alice, make_user, auth_headers):
        headers = auth_headers(alice)
        team = [alice] + [make_user(f"user{i}@example.com") for i in range(10)]
        task = create_task(
            client,
            headers,
            difficulty="easy",
            due_date="2020-01-01T00:00:00",
            assignee_ids=[u.id for u in team],
        )

        body = client.patch(f"/tasks/{task['id']}/status", json={"status": "done"}, headers=headers).json()

        assert body["score"] == 5
        changes = [row.points_change for row in db.query(PointTransaction)]
        assert changes == [0] * 11
        assert db.query(Notification).count() == 0

    def test_reassigning_done_task_then_reopening_charges_current_assignees(
        self, client, db, org, alice, bob, auth_headers
    ):
        headers = auth_headers(alice)
        task = create_task(client, headers, assignee_ids=[alice.id], status="done")

        client.patch(f"/tasks/{task['id']}", json={"assignee_ids": [bob.id]}, headers=headers)
        assert db.query(PointTransaction).count() == 1

        client.patch(f"/tasks/{task['id']}/status", json={"status": "todo"}, headers=headers)

        assert total_points(db, alice.id, org.id) == 20
        assert total_points(db, bob.id, org.id) == -20

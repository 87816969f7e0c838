"""Tests for the point transaction ledger."""

from taskup.models.points import (
    PointTransaction,
    UserPoints,
    TASK_COMPLETED,
    TASK_PROPERTY_CHANGED,
    TASK_UNCOMPLETED,
)
from taskup.points import ledger
from taskup.points.points_service import total_points
from taskup.schemas.points_schema import (
    TaskCompletedMetadata,
    TaskPropertyChangedMetadata,
    load_metadata,
)


def transactions_for(db, user):
    return (
        db.query(PointTransaction)
        .filter(PointTransaction.user_id == user.id)
        .order_by(PointTransaction.id)
        .all()
    )


class TestRecordTransaction:

    def test_creates_user_points_lazily(self, db, org, alice):
        assert db.query(UserPoints).count() == 0

        result = ledger.record_transaction(
            db,
            user_id=alice.id,
            organization_id=org.id,
            task_id=None,
            transaction_type=TASK_COMPLETED,
            points_change=15,
        )
        db.commit()

        assert result.previous_total == 0
        assert result.new_total == 15
        assert total_points(db, alice.id, org.id) == 15
        assert db.query(UserPoints).count() == 1

    def test_running_total_matches_ledger(self, db, org, alice):
        for change in (10, -4, 7, 0, -20):
            ledger.record_transaction(
                db,
                user_id=alice.id,
                organization_id=org.id,
                task_id=None,
                transaction_type=TASK_COMPLETED if change >= 0 else TASK_UNCOMPLETED,
                points_change=change,
            )
        db.commit()

        rows = transactions_for(db, alice)
        assert len(rows) == 5
        for row in rows:
            assert row.new_total - row.previous_total == row.points_change
        for before, after in zip(rows, rows[1:]):
            assert after.previous_total == before.new_total
        assert total_points(db, alice.id, org.id) == sum(row.points_change for row in rows) == -7
        assert rows[-1].new_total == -7

    def test_totals_are_per_organization(self, db, org, alice):
        from taskup.models.organization import Organization

        other = Organization(name="Other", slug="other")
        db.add(other)
        db.commit()

        ledger.record_transaction(
            db, user_id=alice.id, organization_id=org.id, task_id=None,
            transaction_type=TASK_COMPLETED, points_change=5,
        )
        ledger.record_transaction(
            db, user_id=alice.id, organization_id=other.id, task_id=None,
            transaction_type=TASK_COMPLETED, points_change=8,
        )
        db.commit()

        assert total_points(db, alice.id, org.id) == 5
        assert total_points(db, alice.id, other.id) == 8


class TestAwardAndDeduct:

    def test_award_splits_evenly(self, db, org, alice, bob, carol, make_task):
        task = make_task(assignees=[alice, bob, carol])

        results = ledger.award_points_to_assignees(db, task, org.id, 30)
        db.commit()

        assert [r.points_change for r in results] == [10, 10, 10]
        for user in (alice, bob, carol):
            assert total_points(db, user.id, org.id) == 10
            [row] = transactions_for(db, user)
            assert row.transaction_type == TASK_COMPLETED
            assert row.task_id == task.id

    def test_award_metadata(self, db, org, alice, bob, make_task):
        task = make_task(title="Write docs", assignees=[alice, bob])

        ledger.award_points_to_assignees(db, task, org.id, 25)
        db.commit()

        metadata = load_metadata(transactions_for(db, alice)[0].metadata_json)
        assert isinstance(metadata, TaskCompletedMetadata)
        assert metadata.task_title == "Write docs"
        assert metadata.total_task_points == 25
        assert metadata.assignee_count == 2
        assert metadata.points_per_assignee == 13

    def test_award_without_assignees_is_a_noop(self, db, org, make_task):
        task = make_task(assignees=[])

        assert ledger.award_points_to_assignees(db, task, org.id, 30) == []
        assert ledger.deduct_points_from_assignees(db, task, org.id, 30) == []
        assert db.query(PointTransaction).count() == 0
        assert db.query(UserPoints).count() == 0

    def test_deduct_restores_previous_totals(self, db, org, alice, bob, make_task):
        ledger.record_transaction(
            db, user_id=alice.id, organization_id=org.id, task_id=None,
            transaction_type=TASK_COMPLETED, points_change=7,
        )
        task = make_task(assignees=[alice, bob])

        ledger.award_points_to_assignees(db, task, org.id, 40)
        ledger.deduct_points_from_assignees(db, task, org.id, 40, new_status="todo")
        db.commit()

        assert total_points(db, alice.id, org.id) == 7
        assert total_points(db, bob.id, org.id) == 0
        last = transactions_for(db, bob)[-1]
        assert last.transaction_type == TASK_UNCOMPLETED
        assert last.points_change == -20

    def test_odd_split_is_rounded_the_same_way_both_ways(self, db, org, alice, bob, make_task):
        task = make_task(assignees=[alice, bob])

        awarded = ledger.award_points_to_assignees(db, task, org.id, 25)
        deducted = ledger.deduct_points_from_assignees(db, task, org.id, 25)
        db.commit()

        assert [r.points_change for r in awarded] == [13, 13]
        assert [r.points_change for r in deducted] == [-13, -13]
        assert total_points(db, alice.id, org.id) == 0


class TestAdjust:

    def test_applies_per_assignee_delta(self, db, org, alice, bob, make_task):
        task = make_task(assignees=[alice, bob])
        ledger.award_points_to_assignees(db, task, org.id, 20)

        results = ledger.adjust_points_for_property_change(
            db, task, org.id, 20, 30,
            property_name="difficulty", old_value="medium", new_value="hard",
        )
        db.commit()

        assert [r.points_change for r in results] == [5, 5]
        assert total_points(db, alice.id, org.id) == 15
        row = transactions_for(db, bob)[-1]
        assert row.transaction_type == TASK_PROPERTY_CHANGED
        metadata = load_metadata(row.metadata_json)
        assert isinstance(metadata, TaskPropertyChangedMetadata)
        assert metadata.property_name == "difficulty"
        assert (metadata.old_points_per_assignee, metadata.new_points_per_assignee) == (10, 15)

    def test_negative_delta(self, db, org, alice, make_task):
        task = make_task(assignees=[alice])
        ledger.award_points_to_assignees(db, task, org.id, 37)

        ledger.adjust_points_for_property_change(
            db, task, org.id, 37, 25, property_name="due_date",
        )
        db.commit()

        assert total_points(db, alice.id, org.id) == 25

    def test_no_change_is_a_noop(self, db, org, alice, make_task):
        task = make_task(assignees=[alice])

        assert ledger.adjust_points_for_property_change(
            db, task, org.id, 20, 20, property_name="priority",
        ) == []

    def test_delta_rounding_to_zero_is_a_noop(self, db, org, alice, bob, carol, make_user, make_task):
        dave = make_user("dave@example.com")
        task = make_task(assignees=[alice, bob, carol, dave])

        # 20/4 and 21/4 both round to 5
        assert ledger.adjust_points_for_property_change(
            db, task, org.id, 20, 21, property_name="due_date",
        ) == []
        assert db.query(PointTransaction).count() == 0

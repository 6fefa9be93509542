"""Tests for interval overlap and the conflict checker."""

from datetime import datetime, timedelta, timezone

import pytest

from dern_support.core.repository import ScheduleRepository
from dern_support.scheduling.conflicts import ConflictChecker, intervals_overlap
from dern_support.scheduling.errors import ValidationError
from tests.conftest import ADMIN_ID, TECH_A_ID, TECH_B_ID, at


async def _book(session, technician_id, start, end, status="scheduled"):
    schedule = await ScheduleRepository(session).create(
        technician_id=technician_id,
        created_by_id=ADMIN_ID,
        scheduled_start=start,
        scheduled_end=end,
        status=status,
    )
    await session.commit()
    return schedule


class TestIntervalsOverlap:
    def test_partial_overlap(self):
        assert intervals_overlap(at(9), at(11), at(10), at(12))
        assert intervals_overlap(at(10), at(12), at(9), at(11))

    def test_containment(self):
        assert intervals_overlap(at(8), at(17), at(10), at(11))

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(at(9), at(11), at(11), at(12))
        assert not intervals_overlap(at(11), at(12), at(9), at(11))

    def test_disjoint(self):
        assert not intervals_overlap(at(9), at(10), at(13), at(14))


class TestConflictChecker:
    async def test_overlapping_schedule_is_reported(self, session, seed_data):
        existing = await _book(session, TECH_A_ID, at(9), at(11))
        conflicts = await ConflictChecker(session).find_conflicts(TECH_A_ID, at(10), at(12))
        assert [c.id for c in conflicts] == [existing.id]

    async def test_adjacent_window_is_free(self, session, seed_data):
        await _book(session, TECH_A_ID, at(9), at(11))
        assert await ConflictChecker(session).find_conflicts(TECH_A_ID, at(11), at(12)) == []
        assert await ConflictChecker(session).find_conflicts(TECH_A_ID, at(8), at(9)) == []

    async def test_other_technicians_do_not_conflict(self, session, seed_data):
        await _book(session, TECH_B_ID, at(9), at(11))
        assert await ConflictChecker(session).find_conflicts(TECH_A_ID, at(9), at(11)) == []

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    async def test_terminal_schedules_are_ignored(self, session, seed_data, status):
        await _book(session, TECH_A_ID, at(9), at(11), status=status)
        assert await ConflictChecker(session).find_conflicts(TECH_A_ID, at(9), at(11)) == []

    @pytest.mark.parametrize("status", ["scheduled", "in_progress", "rescheduled"])
    async def test_active_statuses_block(self, session, seed_data, status):
        await _book(session, TECH_A_ID, at(9), at(11), status=status)
        assert len(await ConflictChecker(session).find_conflicts(TECH_A_ID, at(9), at(11))) == 1

    async def test_excluded_schedule_does_not_conflict_with_itself(self, session, seed_data):
        existing = await _book(session, TECH_A_ID, at(9), at(11))
        conflicts = await ConflictChecker(session).find_conflicts(
            TECH_A_ID, at(9, 30), at(11, 30), exclude_schedule_id=existing.id
        )
        assert conflicts == []

    async def test_results_are_ordered_by_start(self, session, seed_data):
        late = await _book(session, TECH_A_ID, at(13), at(14))
        early = await _book(session, TECH_A_ID, at(9), at(10))
        conflicts = await ConflictChecker(session).find_conflicts(TECH_A_ID, at(8), at(15))
        assert [c.id for c in conflicts] == [early.id, late.id]

    async def test_naive_datetimes_are_treated_as_utc(self, session, seed_data):
        await _book(session, TECH_A_ID, at(9), at(11))
        conflicts = await ConflictChecker(session).find_conflicts(
            TECH_A_ID, datetime(2026, 4, 6, 10), datetime(2026, 4, 6, 12)
        )
        assert len(conflicts) == 1

    async def test_offset_datetimes_are_converted(self, session, seed_data):
        await _book(session, TECH_A_ID, at(9), at(11))
        plus_two = timezone(timedelta(hours=2))
        # 12:00+02:00 is 10:00 UTC
        start = datetime(2026, 4, 6, 12, tzinfo=plus_two)
        conflicts = await ConflictChecker(session).find_conflicts(
            TECH_A_ID, start, start + timedelta(hours=1)
        )
        assert len(conflicts) == 1

    async def test_query_rows_are_rechecked_against_window(self, session, seed_data, monkeypatch):
        touching = await _book(session, TECH_A_ID, at(11), at(12))
        overlapping = await _book(session, TECH_A_ID, at(10), at(12))

        async def fake_overlapping(self, start, end, **kwargs):
            return [overlapping, touching]

        monkeypatch.setattr(ScheduleRepository, "find_overlapping", fake_overlapping)
        conflicts = await ConflictChecker(session).find_conflicts(TECH_A_ID, at(9), at(11))
        assert [c.id for c in conflicts] == [overlapping.id]

    @pytest.mark.parametrize("start,end", [(at(11), at(10)), (at(10), at(10))])
    async def test_invalid_window_raises(self, session, seed_data, start, end):
        with pytest.raises(ValidationError):
            await ConflictChecker(session).find_conflicts(TECH_A_ID, start, end)

"""Tests for the availability finder."""

import pytest
from sqlalchemy import delete

from dern_support.core.models import SupportRequest, User
from dern_support.core.repository import ScheduleRepository
from dern_support.scheduling.availability import AvailabilityFinder
from dern_support.scheduling.conflicts import ConflictChecker
from tests.conftest import ADMIN_ID, TECH_A_ID, TECH_B_ID, at


async def _book(session, technician_id, start, end, status="scheduled"):
    await ScheduleRepository(session).create(
        technician_id=technician_id,
        created_by_id=ADMIN_ID,
        scheduled_start=start,
        scheduled_end=end,
        status=status,
    )
    await session.commit()


async def test_all_technicians_free_in_id_order(session, seed_data):
    available = await AvailabilityFinder(session).find_available(at(9), at(11))
    assert [t.id for t in available] == [TECH_A_ID, TECH_B_ID]


async def test_busy_technician_is_excluded(session, seed_data):
    await _book(session, TECH_A_ID, at(8), at(10))
    available = await AvailabilityFinder(session).find_available(at(9), at(11))
    assert [t.id for t in available] == [TECH_B_ID]


async def test_adjacent_booking_does_not_make_busy(session, seed_data):
    await _book(session, TECH_A_ID, at(7), at(9))
    available = await AvailabilityFinder(session).find_available(at(9), at(11))
    assert TECH_A_ID in [t.id for t in available]


async def test_inactive_and_non_technician_users_are_never_listed(session, seed_data):
    seed_data["tech_b"].active = False
    await session.commit()
    available = await AvailabilityFinder(session).find_available(at(9), at(11))
    assert [t.id for t in available] == [TECH_A_ID]


async def test_no_technicians_gives_empty_list(session, seed_data):
    await session.execute(delete(SupportRequest))
    await session.execute(delete(User))
    await session.commit()
    assert await AvailabilityFinder(session).find_available(at(9), at(11)) == []


class TestTerminalScheduleHandling:
    """Completed and cancelled schedules block availability by default,
    although the conflict checker ignores them."""

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    async def test_terminal_schedules_count_as_busy_by_default(self, session, seed_data, status):
        await _book(session, TECH_A_ID, at(9), at(11), status=status)

        available = await AvailabilityFinder(session).find_available(at(9), at(11))
        conflicts = await ConflictChecker(session).find_conflicts(TECH_A_ID, at(9), at(11))

        # the two components disagree on terminal schedules
        assert TECH_A_ID not in [t.id for t in available]
        assert conflicts == []

    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    async def test_terminal_schedules_ignored_when_disabled(self, session, seed_data, status):
        await _book(session, TECH_A_ID, at(9), at(11), status=status)
        finder = AvailabilityFinder(session, count_terminal=False)
        available = await finder.find_available(at(9), at(11))
        assert [t.id for t in available] == [TECH_A_ID, TECH_B_ID]

    @pytest.mark.parametrize("count_terminal", [True, False])
    async def test_active_overlap_always_excludes(self, session, seed_data, count_terminal):
        await _book(session, TECH_B_ID, at(10), at(12), status="in_progress")
        finder = AvailabilityFinder(session, count_terminal=count_terminal)
        available = await finder.find_available(at(9), at(11))
        assert TECH_B_ID not in [t.id for t in available]


async def test_list_technicians(session, seed_data):
    technicians = await AvailabilityFinder(session).list_technicians()
    assert {t.email for t in technicians} == {"alice@dern.test", "bob@dern.test"}


async def test_busy_ids_query_ignores_unrelated_days(session, seed_data):
    await _book(session, TECH_A_ID, at(9, day=7), at(11, day=7))
    busy = await ScheduleRepository(session).busy_technician_ids(at(9), at(11))
    assert busy == set()

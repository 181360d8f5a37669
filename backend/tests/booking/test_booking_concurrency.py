import threading
from datetime import datetime, timezone

from mydoc.services import booking


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def race(session_factory, calls):
    """Start every call on its own session at the same moment and collect the results."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)
    errors = []

    def worker(index, call):
        with session_factory() as session:
            barrier.wait()
            try:
                results[index] = call(session)
            except Exception as exc:
                errors.append(exc)

    threads = [
        threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not errors, errors
    return results


def test_one_slot_many_requests_single_winner(db, seed, session_factory, assert_booking_state):
    slot_id = seed.slot(at(9))
    request_ids = [seed.request() for _ in range(5)]

    results = race(
        session_factory,
        [lambda session, rid=rid: booking.schedule_request(session, rid, slot_id) for rid in request_ids],
    )

    winners = [result for result in results if result.success]
    losers = [result for result in results if not result.success]
    assert len(winners) == 1
    assert {result.error for result in losers} == {booking.SLOT_NOT_AVAILABLE}
    assert_booking_state()


def test_one_request_many_slots_single_winner(db, seed, session_factory, assert_booking_state):
    request_id = seed.request()
    slot_ids = [seed.slot(at(9 + offset)) for offset in range(4)]

    results = race(
        session_factory,
        [lambda session, sid=sid: booking.schedule_request(session, request_id, sid) for sid in slot_ids],
    )

    assert sum(1 for result in results if result.success) == 1
    assert {result.error for result in results if not result.success} == {booking.REQUEST_HAS_APPOINTMENT}
    assert_booking_state()


def test_reschedule_and_booking_compete_for_slot(db, seed, session_factory, assert_booking_state):
    booked = booking.schedule_request(db, seed.request(), seed.slot(at(9)))
    target = seed.slot(at(10))
    newcomer = seed.request()

    moved, scheduled = race(
        session_factory,
        [
            lambda session: booking.reschedule_appointment(session, booked.appointment_id, target),
            lambda session: booking.schedule_request(session, newcomer, target),
        ],
    )

    assert moved.success != scheduled.success
    assert_booking_state()


def test_cancel_and_booking_race_keeps_state_consistent(db, seed, session_factory, assert_booking_state):
    slot_id = seed.slot(at(9))
    booked = booking.schedule_request(db, seed.request(), slot_id)
    newcomer = seed.request()

    cancelled, scheduled = race(
        session_factory,
        [
            lambda session: booking.cancel_appointment(session, booked.appointment_id),
            lambda session: booking.schedule_request(session, newcomer, slot_id),
        ],
    )

    assert cancelled.success
    if not scheduled.success:
        assert scheduled.error == booking.SLOT_NOT_AVAILABLE
    assert_booking_state()

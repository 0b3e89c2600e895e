from __future__ import annotations

from spotter.vision.feedback import AMBER, GREEN, LIGHT_BLUE, RED, FeedbackLock, Priority


def test_fault_lock_blocks_hint_but_not_success():
    lock = FeedbackLock().try_override(FeedbackLock.hold("KNEES OUT!", RED, Priority.FAULT, 0, 1000), now=0)
    assert lock.message == "KNEES OUT!"

    hint = FeedbackLock.hold("WATCH LEAN", LIGHT_BLUE, Priority.HINT, 500, 500)
    assert lock.try_override(hint, now=500) is lock

    success = FeedbackLock.hold("GOOD DEPTH!", GREEN, Priority.SUCCESS, 600, 1500)
    assert lock.try_override(success, now=600) is success


def test_equal_priority_overrides():
    lock = FeedbackLock.hold("KNEES OUT!", RED, Priority.FAULT, 0, 1000)
    other = FeedbackLock.hold("CHEST UP", AMBER, Priority.FAULT, 100, 1000)
    assert lock.try_override(other, now=100) is other


def test_expired_lock_accepts_anything():
    lock = FeedbackLock.hold("PERFECT REP!", GREEN, Priority.SUCCESS, 0, 2000)
    hint = FeedbackLock.hold("WATCH LEAN", LIGHT_BLUE, Priority.HINT, 2000, 500)
    assert not lock.is_active(2000)
    assert lock.try_override(hint, now=2000) is hint


def test_settle_drops_priority_after_expiry():
    lock = FeedbackLock.hold("KNEES OUT!", RED, Priority.FAULT, 0, 1000)
    assert lock.settle(500) is lock
    settled = lock.settle(1000)
    assert settled.priority is Priority.STATE
    assert settled.message == "KNEES OUT!"


def test_default_lock_is_inactive():
    lock = FeedbackLock()
    assert not lock.is_active(0)
    assert lock.priority is Priority.STATE

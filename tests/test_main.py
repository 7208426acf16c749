"""Tests for gotify_notifier.main."""

from gotify_notifier.main import _InstanceGuard


def test_instance_guard_blocks_second_instance(qapp, tmp_path):
    lock_path = tmp_path / "gotify-notifier.lock"
    first = _InstanceGuard(lock_path)
    second = _InstanceGuard(lock_path)
    assert first.acquire()
    assert not second.acquire()
    first.release()
    assert second.acquire()
    second.release()


def test_instance_guard_release_without_acquire(qapp, tmp_path):
    guard = _InstanceGuard(tmp_path / "unused.lock")
    guard.release()

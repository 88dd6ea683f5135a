import threading
import time

import pytest

from rental_core.locking import FairLock, WriteSerializer


def _wait_until(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.001)


def test_waiters_are_served_in_arrival_order():
    lock = FairLock()
    order = []
    threads = []

    lock.acquire()
    for index in range(5):
        def worker(index=index):
            with lock:
                order.append(index)

        thread = threading.Thread(target=worker)
        thread.start()
        threads.append(thread)
        _wait_until(lambda: lock.queue_length() == index + 1)
    lock.release()

    for thread in threads:
        thread.join(timeout=5)
    assert order == [0, 1, 2, 3, 4]
    assert not lock.locked()


def test_reacquiring_from_the_owner_thread_raises():
    lock = FairLock()
    with lock:
        with pytest.raises(RuntimeError):
            lock.acquire()
    assert not lock.locked()


def test_release_without_acquire_raises():
    with pytest.raises(RuntimeError):
        FairLock().release()


def test_different_collections_do_not_block_each_other():
    serializer = WriteSerializer()
    done = threading.Event()

    def write_notifications():
        with serializer.exclusive("notifications"):
            done.set()

    with serializer.exclusive("bookings"):
        thread = threading.Thread(target=write_notifications)
        thread.start()
        assert done.wait(timeout=5)
    thread.join(timeout=5)


def test_nested_exclusive_on_same_collection_is_rejected():
    serializer = WriteSerializer()
    with serializer.exclusive("bookings"):
        with pytest.raises(RuntimeError):
            with serializer.exclusive("bookings"):
                pass
    assert not serializer.is_held("bookings")

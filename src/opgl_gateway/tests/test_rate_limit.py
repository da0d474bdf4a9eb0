import threading
import uuid

import pytest

from opgl_gateway.core.keys import generate_plaintext_key, hash_key, key_prefix
from opgl_gateway.core.last_used import LastUsedRecorder
from opgl_gateway.core.rate_limit import Outcome, RateLimiter, epoch_to_datetime, window_start_for

T0 = 1_700_000_100  # multiple of 300


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0 + 5)


@pytest.fixture
def limiter(key_store, logger, clock) -> RateLimiter:
    return RateLimiter(key_store, logger, clock=clock)


def make_key(key_store, rate_limit=3, window=60):
    plain = generate_plaintext_key()
    record = key_store.create("k", hash_key(plain), key_prefix(plain), rate_limit, window)
    return plain, record


def test_window_start_is_aligned():
    assert window_start_for(T0 + 59.9, 60) == T0
    assert window_start_for(T0 + 60, 60) == T0 + 60
    assert window_start_for(T0 + 1, 100) == T0


def test_unknown_key_is_distinct_from_throttling(limiter):
    rl = limiter.check("not-a-real-key")

    assert rl.allowed is False
    assert rl.limit == 0
    assert rl.outcome is Outcome.UNKNOWN_KEY
    assert rl.key_valid is False


def test_inactive_key_never_admitted(limiter, key_store):
    plain, record = make_key(key_store)
    assert key_store.deactivate(record.id) is True

    rl = limiter.check(plain)
    assert rl.outcome is Outcome.UNKNOWN_KEY
    assert rl.limit == 0


def test_requests_up_to_limit_then_rejected(limiter, key_store):
    plain, _ = make_key(key_store, rate_limit=3, window=60)

    results = [limiter.check(plain) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[2].outcome is Outcome.ALLOWED
    assert results[3].outcome is Outcome.THROTTLED
    assert all(r.limit == 3 for r in results)
    assert all(r.reset_epoch == T0 + 60 for r in results)
    assert all(r.checked_at == T0 + 5 for r in results)


def test_new_window_resets_counter(limiter, key_store, clock):
    plain, _ = make_key(key_store, rate_limit=2, window=60)
    for _ in range(3):
        limiter.check(plain)

    clock.now = T0 + 60
    rl = limiter.check(plain)

    assert rl.allowed is True
    assert rl.remaining == 1
    assert rl.reset_epoch == T0 + 120


def test_clock_is_read_on_every_check(limiter, key_store, clock):
    plain, _ = make_key(key_store, rate_limit=1, window=10)

    assert limiter.check(plain).allowed is True
    clock.now += 10
    assert limiter.check(plain).allowed is True


def test_concurrent_increments_lose_no_updates(key_store):
    _, record = make_key(key_store)
    window = epoch_to_datetime(T0)
    threads_n, per_thread = 8, 10
    seen: list[int] = []
    lock = threading.Lock()

    def worker():
        for _ in range(per_thread):
            count = key_store.increment_window(record.id, window)
            with lock:
                seen.append(count)

    threads = [threading.Thread(target=worker) for _ in range(threads_n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    total = threads_n * per_thread
    assert key_store.get_window_count(record.id, window) == total
    # every value handed out exactly once
    assert sorted(seen) == list(range(1, total + 1))


def test_sweep_keeps_recent_windows(limiter, key_store, clock):
    plain, record = make_key(key_store, rate_limit=100, window=60)
    for offset in (0, 60, 120, 180):
        clock.now = T0 + offset
        limiter.check(plain)

    deleted = limiter.sweep_expired_windows(retain_windows=2)

    assert deleted == 2
    assert key_store.get_window_count(record.id, epoch_to_datetime(T0)) == 0
    assert key_store.get_window_count(record.id, epoch_to_datetime(T0 + 120)) == 1
    assert key_store.get_window_count(record.id, epoch_to_datetime(T0 + 180)) == 1


def test_last_used_is_recorded_in_background(key_store, logger):
    plain, record = make_key(key_store)
    recorder = LastUsedRecorder(key_store, logger)
    limiter = RateLimiter(key_store, logger, last_used=recorder)

    assert limiter.check(plain).allowed is True
    recorder.shutdown(wait=True)

    assert key_store.get(record.id).last_used_at is not None


class ExplodingStore:
    def touch_last_used(self, key_id):
        raise RuntimeError("database unavailable")


def test_last_used_failures_are_absorbed(logger):
    recorder = LastUsedRecorder(ExplodingStore(), logger)

    assert recorder.submit(uuid.uuid4()) is True
    recorder.shutdown(wait=True)


class BlockingStore:
    def __init__(self):
        self.release = threading.Event()

    def touch_last_used(self, key_id):
        self.release.wait(timeout=5)


def test_last_used_drops_when_saturated(logger):
    store = BlockingStore()
    recorder = LastUsedRecorder(store, logger, max_pending=1)

    assert recorder.submit(uuid.uuid4()) is True
    assert recorder.submit(uuid.uuid4()) is False

    store.release.set()
    recorder.shutdown(wait=True)


def test_last_used_drops_after_shutdown(key_store, logger):
    recorder = LastUsedRecorder(key_store, logger)
    recorder.shutdown()

    assert recorder.submit(uuid.uuid4()) is False


def test_raw_key_is_never_stored(key_store):
    plain, record = make_key(key_store)

    stored = key_store.get(record.id)
    assert stored.key_hash == hash_key(plain)
    assert plain not in (stored.key_hash, stored.name)
    assert len(stored.key_prefix) == 8

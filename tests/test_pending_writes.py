import threading

from localetree.core.errors import PersistenceError
from localetree.core.models import PendingWrite
from localetree.services.pending_writes import PendingWriteQueue
from tests.factories import FakePersistence


def test_last_write_for_same_key_wins():
    queue = PendingWriteQueue()
    queue.enqueue(PendingWrite("en", "a.b", "v1", "en.json"))
    queue.enqueue(PendingWrite("en", "a.b", "v2", "en.json"))
    adapter = FakePersistence()
    results = queue.flush(adapter)
    assert [w.value for w in adapter.persisted] == ["v2"]
    assert len(results) == 1 and results[0].ok
    assert len(queue) == 0


def test_different_locales_are_different_keys():
    queue = PendingWriteQueue()
    queue.enqueue(PendingWrite("en", "k", "hello"))
    queue.enqueue(PendingWrite("fr", "k", "bonjour"))
    assert {w.key for w in queue.pending()} == {("en", "k"), ("fr", "k")}


def test_failure_does_not_block_siblings():
    queue = PendingWriteQueue()
    queue.enqueue(PendingWrite("en", "ok.one", "1", "en.json"))
    queue.enqueue(PendingWrite("en", "broken", "2", "en.json"))
    queue.enqueue(PendingWrite("en", "ok.two", "3", "en.json"))
    adapter = FakePersistence(fail={"broken": PersistenceError("denied", reason="permission")})
    results = {r.write.keypath: r for r in queue.flush(adapter)}
    assert results["ok.one"].ok and results["ok.two"].ok
    assert not results["broken"].ok
    assert results["broken"].error.reason == "permission"
    assert [w.keypath for w in adapter.persisted] == ["ok.one", "ok.two"]


def test_unexpected_adapter_exception_is_wrapped():
    queue = PendingWriteQueue()
    queue.enqueue(PendingWrite("en", "k", "v", "en.json"))
    queue.enqueue(PendingWrite("en", "fine", "v", "en.json"))
    adapter = FakePersistence(fail={"k": RuntimeError("disk on fire")})
    results = {r.write.keypath: r for r in queue.flush(adapter)}
    assert results["fine"].ok
    err = results["k"].error
    assert isinstance(err, PersistenceError)
    assert err.reason == "error"
    assert isinstance(err.__cause__, RuntimeError)


def test_discard_returns_dropped_writes():
    queue = PendingWriteQueue()
    queue.enqueue(PendingWrite("en", "k", "v"))
    dropped = queue.discard()
    assert dropped == [PendingWrite("en", "k", "v")]
    assert queue.pending() == []


def test_concurrent_enqueue_coalesces():
    queue = PendingWriteQueue()

    def worker(n):
        for i in range(50):
            queue.enqueue(PendingWrite("en", f"key.{i % 10}", f"{n}-{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(queue) == 10

"""Concurrency tests: lost-update safety of the store and reader/writer lock semantics.

Run from the repo root:
    python -m pytest backend/tests/test_concurrency.py -v
"""

import sys
import os
import json
import threading
from concurrent.futures import ThreadPoolExecutor

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from chirpy.database import DB
from chirpy.locks import ReadWriteLock

WORKERS = 16


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "database.json"


# ===================================================================
# concurrent creates
# ===================================================================

class TestConcurrentCreates:
    def test_concurrent_chirps_get_contiguous_ids(self, db_path):
        db = DB(db_path)
        k = 40
        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            chirps = list(pool.map(lambda i: db.create_chirp(f"chirp {i}", 1), range(k)))

        assert sorted(c.id for c in chirps) == list(range(1, k + 1))
        stored = db.list_chirps()
        assert len(stored) == k
        assert sorted(c.body for c in stored) == sorted(f"chirp {i}" for i in range(k))

    def test_separate_handles_share_one_lock(self, db_path):
        k = 30

        def _create(i):
            # a fresh handle per call, as a per-request handler would do
            return DB(db_path).create_chirp(f"chirp {i}", i % 3)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            ids = list(pool.map(_create, range(k)))

        assert sorted(c.id for c in ids) == list(range(1, k + 1))
        raw = json.loads(db_path.read_text(encoding="utf-8"))
        assert len(raw["chirps"]) == k

    def test_concurrent_users_and_revocations(self, db_path):
        db = DB(db_path, bcrypt_rounds=4)
        k = 12

        def _work(i):
            db.create_user(f"user{i}@example.com", "pw")
            db.record_revocation(f"tok-{i}")

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(_work, range(k)))

        assert sorted(u.id for u in db.list_users()) == list(range(1, k + 1))
        assert sorted(r.token for r in db.list_revocations()) == sorted(f"tok-{i}" for i in range(k))

    def test_concurrent_duplicate_email_creates_one_user(self, db_path):
        db = DB(db_path, bcrypt_rounds=4)
        results = []

        def _register():
            try:
                results.append(db.create_user("same@example.com", "pw"))
            except Exception as e:
                results.append(e)

        threads = [threading.Thread(target=_register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(db.list_users()) == 1
        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

    def test_reads_during_writes_never_fail(self, db_path):
        db = DB(db_path)
        errors = []

        def _write(i):
            db.create_chirp(f"chirp {i}", 1)

        def _read(_):
            try:
                db.list_chirps()
            except Exception as e:
                errors.append(e)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            for i in range(20):
                pool.submit(_write, i)
                pool.submit(_read, i)

        assert errors == []
        assert len(db.list_chirps()) == 20


# ===================================================================
# ReadWriteLock
# ===================================================================

class TestReadWriteLock:
    def test_readers_hold_lock_together(self):
        lock = ReadWriteLock()
        barrier = threading.Barrier(3, timeout=2)
        errors = []

        def _reader():
            with lock.read():
                try:
                    # only passes if all three readers are inside at once
                    barrier.wait()
                except threading.BrokenBarrierError as e:
                    errors.append(e)

        threads = [threading.Thread(target=_reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def _reader():
            with lock.read():
                entered.set()

        with lock.write():
            t = threading.Thread(target=_reader)
            t.start()
            assert not entered.wait(0.2)
        assert entered.wait(2)
        t.join()

    def test_reader_excludes_writer(self):
        lock = ReadWriteLock()
        entered = threading.Event()

        def _writer():
            with lock.write():
                entered.set()

        with lock.read():
            t = threading.Thread(target=_writer)
            t.start()
            assert not entered.wait(0.2)
        assert entered.wait(2)
        t.join()

    def test_writers_are_mutually_exclusive(self):
        lock = ReadWriteLock()
        active = []
        overlaps = []

        def _writer():
            with lock.write():
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
                threading.Event().wait(0.01)
                active.pop()

        threads = [threading.Thread(target=_writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert overlaps == []

    def test_lock_released_on_exception(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            with lock.write():
                raise RuntimeError("boom")
        with pytest.raises(RuntimeError):
            with lock.read():
                raise RuntimeError("boom")

        acquired = threading.Event()

        def _writer():
            with lock.write():
                acquired.set()

        t = threading.Thread(target=_writer)
        t.start()
        assert acquired.wait(2)
        t.join()

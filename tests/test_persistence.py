import threading

from decision_engine.persistence import PersistenceQueue


class TestPersistenceQueue:
    def test_flush_runs_jobs_in_submission_order(self):
        queue = PersistenceQueue()
        seen = []
        for i in range(5):
            assert queue.submit("job", lambda i=i: seen.append(i))

        assert queue.pending == 5
        assert queue.flush() == 5
        assert seen == [0, 1, 2, 3, 4]
        assert queue.pending == 0
        assert queue.completed == 5

    def test_failed_job_is_counted_and_does_not_stop_the_drain(self):
        queue = PersistenceQueue()
        seen = []

        def broken():
            raise ConnectionError("database went away")

        queue.submit("ok", lambda: seen.append("first"))
        queue.submit("broken", broken)
        queue.submit("ok", lambda: seen.append("last"))

        assert queue.flush() == 3
        assert seen == ["first", "last"]
        assert queue.failures == 1
        assert queue.completed == 2
        assert isinstance(queue.last_error, ConnectionError)

    def test_full_buffer_drops_jobs(self):
        queue = PersistenceQueue(max_buffer_size=2)
        assert queue.submit("a", lambda: None)
        assert queue.submit("b", lambda: None)
        assert not queue.submit("c", lambda: None)
        assert queue.dropped == 1
        assert queue.pending == 2

    def test_background_thread_drains(self):
        queue = PersistenceQueue(flush_interval=0.01)
        done = threading.Event()
        queue.start()
        try:
            queue.submit("signal", done.set)
            assert done.wait(2)
        finally:
            queue.stop()
        assert queue.completed == 1

    def test_stop_flushes_remaining_jobs(self):
        queue = PersistenceQueue(flush_interval=60)
        seen = []
        queue.start()
        queue.submit("late", lambda: seen.append(1))
        queue.stop()
        assert seen == [1]

    def test_concurrent_submitters_respect_the_bound(self):
        queue = PersistenceQueue(max_buffer_size=100)
        barrier = threading.Barrier(8)

        def submitter():
            barrier.wait()
            for _ in range(50):
                queue.submit("event", lambda: None)

        threads = [threading.Thread(target=submitter) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert queue.pending == 100
        assert queue.dropped == 300

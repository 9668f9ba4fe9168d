import threading
import time

from meshgen.services.job_runner import JobRunner


def test_submit_returns_immediately_and_runs_in_background(timeout):
    release = threading.Event()
    seen = []

    def target(job_id):
        release.wait(timeout)
        seen.append(job_id)

    runner = JobRunner(target)
    thread = runner.submit("job-1")
    assert thread.daemon
    assert runner.active_count() == 1
    assert seen == []

    release.set()
    runner.join(timeout)
    assert seen == ["job-1"]
    assert runner.active_count() == 0


def test_max_concurrent_caps_running_jobs(timeout):
    running = 0
    peak = 0
    lock = threading.Lock()

    def target(job_id):
        nonlocal running, peak
        with lock:
            running += 1
            peak = max(peak, running)
        time.sleep(0.05)
        with lock:
            running -= 1

    runner = JobRunner(target, max_concurrent=2)
    for i in range(6):
        runner.submit(f"job-{i}")
    runner.join(timeout)

    assert peak == 2


def test_crashing_target_does_not_leak_handles(timeout):
    def target(job_id):
        raise RuntimeError("boom")

    runner = JobRunner(target)
    runner.submit("job-1").join(timeout)
    assert runner.active_count() == 0

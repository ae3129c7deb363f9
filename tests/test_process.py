"""Tests for processes."""

import pytest

from simkernel import Process, Simulation


def test_process_starts_on_next_step():
    """Tests that the body only runs from inside the simulation loop."""
    simulation = Simulation()
    log = []

    def body():
        log.append(("start", simulation.now))
        yield simulation.timeout(1)
        log.append(("end", simulation.now))

    process = simulation.process(body())
    assert isinstance(process, Process)
    assert process.pending
    assert process.is_alive
    assert log == []

    assert simulation.step()
    assert log == [("start", 0.0)]
    assert process.pending

    simulation.run()
    assert log == [("start", 0.0), ("end", 1.0)]
    assert process.processed
    assert not process.is_alive


def test_process_name():
    """Tests process naming."""
    simulation = Simulation()

    def clerk():
        yield simulation.timeout(1)

    assert simulation.process(clerk()).name == "test_process_name.<locals>.clerk"
    assert simulation.process(clerk(), name="desk").name == "desk"
    assert repr(simulation.process(clerk(), name="desk")) == "<Process desk pending>"


def test_completion_releases_awaiters():
    """Tests that every process waiting on another process resumes once it returns."""
    simulation = Simulation()
    log = []

    def child():
        yield simulation.timeout(3)
        return "result"

    def parent(label, process):
        value = yield process
        log.append((label, value, simulation.now))

    process = simulation.process(child())
    simulation.process(parent("a", process))
    simulation.process(parent("b", process))
    simulation.run()

    assert process.value == "result"
    assert log == [("a", "result", 3.0), ("b", "result", 3.0)]


def test_coroutine_process():
    """Tests processes written as coroutines."""
    simulation = Simulation()

    async def child():
        return await simulation.timeout(2, "x")

    async def parent():
        first = await simulation.process(child())
        second = await simulation.timeout(1, "y")
        return first + second

    process = simulation.process(parent())
    simulation.run()
    assert process.value == "xy"
    assert simulation.now == 3.0


def test_ready_event_does_not_suspend():
    """Tests that waiting on a processed event continues synchronously."""
    simulation = Simulation()
    done = simulation.timeout(0, "done")
    simulation.run()
    log = []

    def body():
        value = yield done
        log.append(value)
        value = yield done
        log.append(value)

    async def coroutine_body():
        log.append(await done)

    process = simulation.process(body())
    other = simulation.process(coroutine_body())
    simulation.step()
    assert log == ["done", "done"]
    assert process.triggered

    simulation.step()
    assert log == ["done", "done", "done"]
    assert other.triggered


def test_active_process():
    """Tests that the running process is visible to the simulation."""
    simulation = Simulation()
    seen = []

    def body():
        seen.append(simulation.active_process)
        yield simulation.timeout(1)
        seen.append(simulation.active_process)

    process = simulation.process(body())
    simulation.run()
    assert seen == [process, process]
    assert simulation.active_process is None


def test_abort_waited_event_destroys_process():
    """Tests that aborting an event discards the processes waiting on it."""
    simulation = Simulation()
    log = []
    gate = simulation.event()

    def worker():
        try:
            yield gate
            log.append("resumed")
        finally:
            log.append("cleanup")

    def watcher(process):
        yield process
        log.append("watcher resumed")

    process = simulation.process(worker())
    watching = simulation.process(watcher(process))
    simulation.run()
    assert process.target is gate

    gate.abort()
    assert log == ["cleanup"]
    assert process.aborted
    assert not process.is_alive
    assert process.target is None
    assert watching.aborted

    simulation.run()
    assert log == ["cleanup"]


def test_failing_cleanup_on_abort():
    """Tests that a cleanup failure still destroys every waiter of an aborted event."""
    simulation = Simulation()
    log = []
    timeout = simulation.timeout(10)

    def broken_cleanup():
        try:
            yield timeout
        finally:
            raise KeyError("cleanup")

    def clean():
        try:
            yield timeout
            log.append("resumed")
        finally:
            log.append("cleanup")

    broken = simulation.process(broken_cleanup())
    healthy = simulation.process(clean())
    simulation.run(until=1)

    with pytest.raises(KeyError):
        timeout.abort()
    assert broken.aborted
    assert healthy.aborted
    assert log == ["cleanup"]

    # several failing waiters are reported together
    timeout = simulation.timeout(10)
    first = simulation.process(broken_cleanup())
    second = simulation.process(broken_cleanup())
    simulation.run(until=2)

    with pytest.raises(ExceptionGroup) as excinfo:
        timeout.abort()
    assert len(excinfo.value.exceptions) == 2
    assert first.aborted
    assert second.aborted


def test_failing_cleanup_on_process_abort():
    """Tests that a process whose cleanup raises is still aborted."""
    simulation = Simulation()

    def body():
        try:
            yield simulation.timeout(5)
        finally:
            raise KeyError("cleanup")

    process = simulation.process(body())
    simulation.run(until=1)

    with pytest.raises(KeyError):
        process.abort()
    assert process.aborted
    assert not process.is_alive


def test_wait_on_aborted_event():
    """Tests that a process waiting on an aborted event is destroyed at once."""
    simulation = Simulation()
    log = []
    gate = simulation.event()
    gate.abort()

    def body():
        try:
            yield gate
            log.append("resumed")
        finally:
            log.append("cleanup")

    process = simulation.process(body())
    simulation.run()
    assert log == ["cleanup"]
    assert process.aborted


def test_abort_process():
    """Tests aborting a suspended process."""
    simulation = Simulation()
    log = []

    def body():
        try:
            yield simulation.timeout(5)
            log.append("resumed")
        finally:
            log.append("cleanup")

    process = simulation.process(body())
    simulation.run(until=1)
    timeout = process.target

    process.abort()
    assert process.aborted
    assert log == ["cleanup"]

    simulation.run()
    assert timeout.processed
    assert log == ["cleanup"]

    # aborting a finished process does nothing
    finished = simulation.process(iter_once(simulation))
    simulation.run()
    finished.abort()
    assert finished.processed


def iter_once(simulation):
    yield simulation.timeout(1)


def test_abort_sibling_waiter():
    """Tests aborting a process that waits on the event currently being processed."""
    simulation = Simulation()
    shared = simulation.timeout(1)
    processes = {}
    log = []

    def first():
        yield shared
        processes["second"].abort()
        log.append("first")

    def second():
        yield shared
        log.append("second")

    processes["first"] = simulation.process(first())
    processes["second"] = simulation.process(second())
    simulation.run()

    assert log == ["first"]
    assert processes["first"].processed
    assert processes["second"].aborted


def test_abort_before_start():
    """Tests aborting a process whose body never ran."""
    simulation = Simulation()
    log = []

    def body():
        log.append("ran")
        yield simulation.timeout(1)

    process = simulation.process(body())
    process.abort()
    simulation.run()
    assert process.aborted
    assert log == []


def test_process_cannot_abort_itself():
    """Tests that a process cannot abort its own completion event."""
    simulation = Simulation()
    processes = []

    def body():
        yield simulation.timeout(1)
        processes[0].abort()

    processes.append(simulation.process(body()))
    with pytest.raises(RuntimeError, match="cannot abort itself"):
        simulation.run()
    assert processes[0].aborted


def test_failing_process():
    """Tests that a failure surfaces to run() and leaves the simulation usable."""
    simulation = Simulation()
    log = []
    shared = simulation.timeout(1)

    def failing():
        yield shared
        raise ValueError("boom")

    def healthy(label):
        yield shared
        log.append((label, simulation.now))
        yield simulation.timeout(1)
        log.append((label, simulation.now))

    def watcher(process):
        yield process
        log.append("watcher resumed")

    process = simulation.process(failing())
    simulation.process(watcher(process))
    simulation.process(healthy("healthy"))

    with pytest.raises(ValueError, match="boom") as excinfo:
        simulation.run()
    assert any("failing" in note for note in excinfo.value.__notes__)
    assert process.aborted
    assert log == [("healthy", 1.0)]

    simulation.run()
    assert log == [("healthy", 1.0), ("healthy", 2.0)]


def test_invalid_wait():
    """Tests waiting on something that is not an event of the simulation."""
    simulation = Simulation()
    other = Simulation()
    log = []

    def body(target):
        try:
            yield target
        finally:
            log.append("cleanup")

    process = simulation.process(body(5))
    with pytest.raises(TypeError, match="not an event"):
        simulation.run()
    assert process.aborted
    assert log == ["cleanup"]

    simulation.process(body(other.event()))
    with pytest.raises(TypeError, match="not an event"):
        simulation.run()


def test_invalid_body():
    """Tests that a process body must be a generator or coroutine."""
    simulation = Simulation()

    def body():
        yield simulation.timeout(1)

    with pytest.raises(TypeError):
        simulation.process(body)
    with pytest.raises(TypeError):
        simulation.process(lambda: None)
    with pytest.raises(TypeError):
        Process(None, body())

import threading


def test_run_on_ui_executes_inline_on_owner_thread(dispatcher):
    calls = []

    dispatcher.run_on_ui(lambda: calls.append("done"))

    assert calls == ["done"]
    assert dispatcher.drain() == 0


def test_actions_from_workers_wait_for_drain(dispatcher):
    calls = []
    worker = threading.Thread(target=lambda: dispatcher.run_on_ui(lambda: calls.append("worker")))
    worker.start()
    worker.join()

    assert calls == []
    assert dispatcher.drain() == 1
    assert calls == ["worker"]


def test_drain_keeps_going_after_a_failing_action(dispatcher):
    calls = []

    def boom():
        raise ValueError("boom")

    dispatcher.post(boom)
    dispatcher.post(lambda: calls.append("after"))

    assert dispatcher.drain() == 2
    assert calls == ["after"]


def test_drain_respects_max_items(dispatcher):
    for _ in range(3):
        dispatcher.post(lambda: None)

    assert dispatcher.drain(max_items=2) == 2
    assert dispatcher.drain() == 1


def test_drain_is_reserved_to_owner_thread(dispatcher):
    errors = []

    def worker():
        try:
            dispatcher.drain()
        except RuntimeError as exc:
            errors.append(exc)

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join()

    assert len(errors) == 1


def test_has_thread_access(dispatcher):
    seen = []
    thread = threading.Thread(target=lambda: seen.append(dispatcher.has_thread_access))
    thread.start()
    thread.join()

    assert dispatcher.has_thread_access
    assert seen == [False]

from backend.core.thread_store import ChatThread, ThreadStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_idle_threads_are_evicted():
    clock = FakeClock()
    store = ThreadStore(idle_seconds=60, clock=clock)
    store.add(ChatThread("thread_a", "buro"))
    store.add(ChatThread("thread_b", "buro"))

    clock.now += 40
    assert store.get("thread_b") is not None

    clock.now += 30
    assert store.get("thread_a") is None
    assert store.get("thread_b") is not None
    assert len(store) == 1


def test_capacity_evicts_least_recently_used():
    store = ThreadStore(max_threads=2, clock=FakeClock())
    store.add(ChatThread("thread_a", "buro"))
    store.add(ChatThread("thread_b", "buro"))
    store.get("thread_a")
    store.add(ChatThread("thread_c", "buro"))

    assert "thread_a" in store
    assert "thread_b" not in store
    assert "thread_c" in store


def test_thread_history_keeps_newest_messages():
    thread = ChatThread("thread_a", "buro")
    for i in range(5):
        thread.append("user", str(i), limit=2)
    assert [m["content"] for m in thread.history] == ["3", "4"]

"""Progress notifier subscribe/publish/unsubscribe."""

from buildtrack.services.progress_events import ProgressEvent, ProgressNotifier


def test_publish_reaches_listeners_in_order():
    notifier = ProgressNotifier()
    seen = []
    notifier.subscribe(lambda e: seen.append(("a", e.progress)))
    notifier.subscribe(lambda e: seen.append(("b", e.progress)))

    delivered = notifier.publish(ProgressEvent(project_id=1, progress=40))

    assert delivered == 2
    assert seen == [("a", 40), ("b", 40)]


def test_unsubscribe_handle_stops_delivery():
    notifier = ProgressNotifier()
    seen = []
    unsubscribe = notifier.subscribe(seen.append)

    unsubscribe()
    unsubscribe()  # second call is a no-op
    notifier.publish(ProgressEvent(project_id=1, progress=10))

    assert seen == []
    assert len(notifier) == 0


def test_failing_listener_does_not_block_others():
    notifier = ProgressNotifier()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(seen.append)

    delivered = notifier.publish(ProgressEvent(project_id=3, progress=75))

    assert delivered == 1
    assert seen == [ProgressEvent(project_id=3, progress=75)]


def test_event_to_dict():
    assert ProgressEvent(project_id=9, progress=55).to_dict() == {"project_id": 9, "progress": 55}

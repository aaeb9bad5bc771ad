import json

from forge.livereload import LIVERELOAD_SCRIPT, LiveReloadNotifier, reload_message


class FakeSubscriber:
    def __init__(self, fail=False):
        self.closed = False
        self.fail = fail
        self.messages = []
        self.close_calls = 0

    def send(self, message):
        if self.fail:
            raise ConnectionError("socket went away")
        self.messages.append(message)

    def close(self):
        self.close_calls += 1
        self.closed = True


class FakeTransport:
    def __init__(self):
        self.close_calls = 0

    def close(self):
        self.close_calls += 1


def test_reload_message_is_json():
    assert json.loads(reload_message("content", 17)) == {"type": "content", "version": 17}


def test_broadcast_reaches_every_subscriber():
    notifier = LiveReloadNotifier()
    subscribers = [FakeSubscriber() for _ in range(3)]
    for subscriber in subscribers:
        assert notifier.add(subscriber)
    assert notifier.count() == 3

    assert notifier.broadcast("css", 5) == 3
    for subscriber in subscribers:
        assert [json.loads(m) for m in subscriber.messages] == [{"type": "css", "version": 5}]


def test_adding_twice_registers_once():
    notifier = LiveReloadNotifier()
    subscriber = FakeSubscriber()
    notifier.add(subscriber)
    notifier.add(subscriber)
    assert notifier.count() == 1
    notifier.remove(subscriber)
    notifier.remove(subscriber)
    assert notifier.count() == 0


def test_closed_subscribers_are_skipped():
    notifier = LiveReloadNotifier()
    open_one, closed_one = FakeSubscriber(), FakeSubscriber()
    closed_one.closed = True
    notifier.add(open_one)
    notifier.add(closed_one)
    assert notifier.broadcast("content", 1) == 1
    assert closed_one.messages == []


def test_failing_subscriber_does_not_stop_others():
    notifier = LiveReloadNotifier()
    first, broken, last = FakeSubscriber(), FakeSubscriber(fail=True), FakeSubscriber()
    for subscriber in (first, broken, last):
        notifier.add(subscriber)
    assert notifier.broadcast("template", 9) == 2
    assert len(first.messages) == 1
    assert len(last.messages) == 1


def test_stop_is_idempotent_and_closes_everything():
    transport = FakeTransport()
    notifier = LiveReloadNotifier(transport)
    subscriber = FakeSubscriber()
    notifier.add(subscriber)

    notifier.stop()
    notifier.stop()

    assert notifier.stopped
    assert subscriber.close_calls == 1
    assert transport.close_calls == 1
    assert notifier.count() == 0


def test_stopped_notifier_rejects_subscribers_and_broadcasts():
    notifier = LiveReloadNotifier()
    notifier.stop()
    subscriber = FakeSubscriber()
    assert not notifier.add(subscriber)
    assert notifier.broadcast("content", 1) == 0
    assert subscriber.messages == []


def test_attach_sets_transport_closed_on_stop():
    notifier = LiveReloadNotifier()
    transport = FakeTransport()
    notifier.attach(transport)
    notifier.stop()
    assert transport.close_calls == 1


def test_client_script_has_url_placeholder():
    assert "{{ livereload_ws_url }}" in LIVERELOAD_SCRIPT
    assert "window.location.reload()" in LIVERELOAD_SCRIPT

import logging

from siteforge.adapters.notifier import InMemoryNotifier, LoggingNotifier


def test_in_memory_rooms():
    notifier = InMemoryNotifier()
    notifier.notify(["editor", "admin"], "new_post_created", {"post_id": "1"})
    notifier.notify(["admin"], "post_status_changed", {"post_id": "1"})

    assert len(notifier.for_room("admin")) == 2
    assert len(notifier.for_room("editor")) == 1
    assert notifier.for_room("subscriber") == []


def test_drain_empties_buffer():
    notifier = InMemoryNotifier()
    notifier.notify(["admin"], "x", {})

    assert len(notifier.drain()) == 1
    assert notifier.drain() == []


def test_payload_is_copied():
    notifier = InMemoryNotifier()
    payload = {"title": "a"}
    notifier.notify(["admin"], "x", payload)
    payload["title"] = "b"

    assert notifier.sent[0].payload == {"title": "a"}


def test_logging_notifier(caplog):
    with caplog.at_level(logging.INFO, logger="siteforge.adapters.notifier"):
        LoggingNotifier().notify(["editor", "admin"], "new_post_created", {"post_id": "1"})

    assert "new_post_created to editor,admin" in caplog.text

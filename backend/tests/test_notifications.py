"""
Tests for the webhook notification dispatcher (HTTP calls are stubbed).
"""
import requests

from courtside.services import notifications
from courtside.services.notifications import Event, WebhookDispatcher, dispatch_all


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_dry_run_without_url(monkeypatch):
    monkeypatch.delenv("NOTIFICATION_WEBHOOK_URL", raising=False)
    calls = []
    monkeypatch.setattr(requests, "post", lambda *a, **kw: calls.append(a))

    dispatcher = WebhookDispatcher()
    assert dispatcher.dry_run
    assert dispatch_all(dispatcher, [Event(notifications.MATCH_COMPLETED, 1, {"match_id": 2})]) == []
    assert calls == []


def test_posts_event_json(monkeypatch):
    sent = []

    def fake_post(url, json=None, timeout=None):
        sent.append((url, json, timeout))
        return FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    dispatcher = WebhookDispatcher(url="https://hooks.example.test/courtside", timeout=2)
    dispatcher.dispatch(Event(notifications.COMPETITION_COMPLETED, 7, {"champion_id": 3}))

    [(url, body, timeout)] = sent
    assert url == "https://hooks.example.test/courtside"
    assert timeout == 2
    assert body["type"] == "competition_completed"
    assert body["competition_id"] == 7
    assert body["payload"] == {"champion_id": 3}
    assert "emitted_at" in body


def test_http_failure_becomes_warning(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(502))
    dispatcher = WebhookDispatcher(url="https://hooks.example.test/courtside")
    events = [Event(notifications.MATCH_COMPLETED, 1), Event(notifications.PLAYOFFS_CREATED, 1)]

    warnings = dispatch_all(dispatcher, events)
    assert len(warnings) == 2
    assert "502" in warnings[0]


def test_no_dispatcher_no_warnings():
    assert dispatch_all(None, [Event(notifications.MATCH_COMPLETED, 1)]) == []

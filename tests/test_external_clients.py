import pytest
import requests

import routes.google_calendar as gcal
import routes.google_oauth as oauth
import routes.openai_client as openai_client
import routes.twilio_messaging as twilio
from services.errors import DeliveryFailure, ExternalServiceFailure


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ("" if payload is None else str(payload))

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def calls():
    return []


# Twilio
@pytest.fixture
def twilio_creds(monkeypatch):
    monkeypatch.setattr(twilio, "TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setattr(twilio, "TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.setattr(twilio, "TWILIO_WHATSAPP_FROM", "whatsapp:+14155238886")


def test_send_whatsapp_posts_message(monkeypatch, twilio_creds, calls):
    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return FakeResponse(201, {"sid": "SM1"})

    monkeypatch.setattr(twilio.requests, "request", fake_request)

    assert twilio.TwilioMessenger().send("whatsapp:+5491100000001", "hola", media_url="https://x/y.png") is True
    [(method, url, kwargs)] = calls
    assert method == "POST"
    assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert kwargs["data"] == {
        "From": "whatsapp:+14155238886",
        "To": "whatsapp:+5491100000001",
        "Body": "hola",
        "MediaUrl": "https://x/y.png",
    }


def test_send_whatsapp_http_error(monkeypatch, twilio_creds):
    monkeypatch.setattr(
        twilio.requests, "request",
        lambda *a, **k: FakeResponse(400, {"message": "bad To", "code": 21211}),
    )
    with pytest.raises(DeliveryFailure, match="http_400 bad To"):
        twilio.send_whatsapp("whatsapp:+1", "hola")
    assert twilio.TwilioMessenger().send("whatsapp:+1", "hola") is False


def test_send_whatsapp_network_error(monkeypatch, twilio_creds):
    def boom(*a, **k):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(twilio.requests, "request", boom)
    assert twilio.TwilioMessenger().send("whatsapp:+1", "hola") is False


def test_send_whatsapp_without_credentials(monkeypatch):
    monkeypatch.setattr(twilio, "TWILIO_ACCOUNT_SID", "")
    with pytest.raises(DeliveryFailure, match="missing_credentials"):
        twilio.send_whatsapp("whatsapp:+1", "hola")


# Google Calendar
@pytest.fixture
def gcal_auth(monkeypatch):
    monkeypatch.setattr(gcal, "_auth_header", lambda: {"Authorization": "Bearer t"})


def test_insert_event_payload(monkeypatch, gcal_auth, calls):
    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return FakeResponse(200, {"id": "ev1", "summary": "Reunión"})

    monkeypatch.setattr(gcal.requests, "request", fake_request)

    item = gcal.GoogleCalendar("primary").insert(
        summary="Reunión",
        description="Creado por asistente",
        start_iso="2025-06-05T07:00:00-03:00",
        end_iso="2025-06-05T08:00:00-03:00",
        attendees=["ana@example.com", "nope"],
    )

    assert item == {"id": "ev1", "summary": "Reunión"}
    [(method, url, kwargs)] = calls
    assert method == "POST"
    assert url == "https://www.googleapis.com/calendar/v3/calendars/primary/events"
    payload = kwargs["json"]
    assert payload["start"] == {"dateTime": "2025-06-05T10:00:00Z"}
    assert payload["end"] == {"dateTime": "2025-06-05T11:00:00Z"}
    assert payload["attendees"] == [{"email": "ana@example.com"}]
    assert payload["reminders"] == {"useDefault": True}


def test_insert_event_failure_raises(monkeypatch, gcal_auth):
    monkeypatch.setattr(gcal.requests, "request", lambda *a, **k: FakeResponse(403, {"error": "forbidden"}))

    with pytest.raises(ExternalServiceFailure) as exc:
        gcal.gcal_insert_event({"summary": "x", "start": "2025-06-05T07:00:00-03:00", "end": "2025-06-05T08:00:00-03:00"})
    assert exc.value.status_code == 403


def test_list_events_params(monkeypatch, gcal_auth, calls):
    def fake_request(method, url, **kwargs):
        calls.append(kwargs["params"])
        return FakeResponse(200, {"items": [{"id": "a"}, {"id": "b"}]})

    monkeypatch.setattr(gcal.requests, "request", fake_request)

    items = gcal.GoogleCalendar().list("2025-06-02T09:00:00-03:00", "2025-06-03T09:00:00-03:00")

    assert [i["id"] for i in items] == ["a", "b"]
    [params] = calls
    assert params["singleEvents"] == "true"
    assert params["orderBy"] == "startTime"
    assert params["timeMin"] == "2025-06-02T12:00:00Z"
    assert params["timeMax"] == "2025-06-03T12:00:00Z"


def test_list_events_network_error(monkeypatch, gcal_auth):
    def boom(*a, **k):
        raise requests.Timeout("slow")

    monkeypatch.setattr(gcal.requests, "request", boom)
    with pytest.raises(ExternalServiceFailure):
        gcal.gcal_list_events("2025-06-02T09:00:00-03:00", "2025-06-03T09:00:00-03:00")


def test_refresh_not_configured(monkeypatch):
    monkeypatch.setattr(oauth, "TOKENS", {})
    monkeypatch.setattr(oauth, "GOOGLE_REFRESH_TOKEN", "")

    with pytest.raises(ExternalServiceFailure) as exc:
        oauth._refresh()
    assert exc.value.status_code == 401


def test_refresh_caches_access_token(monkeypatch, calls):
    monkeypatch.setattr(oauth, "TOKENS", {})
    monkeypatch.setattr(oauth, "GOOGLE_REFRESH_TOKEN", "rt")
    monkeypatch.setattr(oauth, "GOOGLE_CLIENT_ID", "cid")
    monkeypatch.setattr(oauth, "GOOGLE_CLIENT_SECRET", "cs")

    def fake_post(url, data=None, timeout=None):
        calls.append(data)
        return FakeResponse(200, {"access_token": "at", "expires_in": 3600})

    monkeypatch.setattr(oauth.requests, "post", fake_post)

    assert oauth._refresh()["access_token"] == "at"
    assert oauth._refresh()["access_token"] == "at"
    assert len(calls) == 1
    assert calls[0]["grant_type"] == "refresh_token"


# OpenAI
def test_classify_intent_raw_uses_json_mode(monkeypatch, calls):
    monkeypatch.setattr(openai_client, "OPENAI_API_KEY", "sk-test")

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse(200, {"choices": [{"message": {"content": '{"intent": "chitchat"}'}}]})

    monkeypatch.setattr(openai_client.requests, "post", fake_post)

    out = openai_client.classify_intent_raw("hola", now_iso="2025-06-02T09:00:00-03:00")

    assert out == '{"intent": "chitchat"}'
    [(url, payload)] = calls
    assert url.endswith("/chat/completions")
    assert payload["temperature"] == 0
    assert payload["response_format"] == {"type": "json_object"}
    assert "2025-06-02T09:00:00-03:00" in payload["messages"][0]["content"]


def test_openai_without_key_raises(monkeypatch):
    monkeypatch.setattr(openai_client, "OPENAI_API_KEY", "")
    with pytest.raises(ExternalServiceFailure):
        openai_client.chitchat_reply("hola")


def test_openai_http_error_raises(monkeypatch):
    monkeypatch.setattr(openai_client, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(openai_client.requests, "post", lambda *a, **k: FakeResponse(500, None, "oops"))
    with pytest.raises(ExternalServiceFailure) as exc:
        openai_client.chitchat_reply("hola")
    assert exc.value.status_code == 500


def test_insert_event_non_json_body_raises(monkeypatch, gcal_auth):
    monkeypatch.setattr(gcal.requests, "request", lambda *a, **k: FakeResponse(200, None, "<html>"))

    with pytest.raises(ExternalServiceFailure) as exc:
        gcal.GoogleCalendar().insert("x", "y", "2025-06-05T07:00:00-03:00", "2025-06-05T08:00:00-03:00")
    assert exc.value.service == "gcal"


def test_list_events_non_json_body_raises(monkeypatch, gcal_auth):
    monkeypatch.setattr(gcal.requests, "request", lambda *a, **k: FakeResponse(200, ["not", "an", "object"]))

    with pytest.raises(ExternalServiceFailure):
        gcal.gcal_list_events("2025-06-02T09:00:00-03:00", "2025-06-03T09:00:00-03:00")

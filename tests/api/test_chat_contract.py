from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import HTTPException
from fastapi.testclient import TestClient

from API_LAYER.app import app
from models.conversation import ChatReply

# No `with` block: startup (and the datastore connection) never runs
client = TestClient(app)

PAYLOAD = {
    "messages": [{"role": "user", "content": "add expense 21 for a haircut"}],
    "userId": "test-user",
    "entitlement": "free",
}


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def assert_failure_envelope(body: dict, error_type: str):
    """
    Enforces the minimal failure response contract.
    """
    assert isinstance(body, dict), "Failure response must be a JSON object"
    assert "error" in body, "Missing 'error' key in failure response"

    error = body["error"]
    assert error["type"] == error_type
    assert isinstance(error["message"], str) and error["message"]


def _executor(**execute_kwargs):
    executor = MagicMock()
    executor.execute = AsyncMock(**execute_kwargs)
    return executor


# ------------------------------------------------------------
# Success contract
# ------------------------------------------------------------
def test_successful_turn_returns_reply_shape():
    reply = ChatReply(
        replyText="✅ Saved expense: Haircut, $21.00 (Personal Care).",
        createdRecordId="rec-1",
        createdRecordType="transaction",
        createdRecordIds=["rec-1"],
    )
    with patch("API_LAYER.app.chat_executor", new=_executor(return_value=reply)):
        response = client.post("/chat-completion", json=PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["replyText"].startswith("✅")
    assert body["requiresUpgrade"] is False
    assert body["createdRecordId"] == "rec-1"
    assert body["createdRecordType"] == "transaction"
    assert body["createdRecordIds"] == ["rec-1"]


def test_paywall_reply_passes_through():
    reply = ChatReply(replyText="That needs Premium.", requiresUpgrade=True)
    with patch("API_LAYER.app.chat_executor", new=_executor(return_value=reply)):
        response = client.post("/chat-completion", json=PAYLOAD)

    assert response.status_code == 200
    assert response.json()["requiresUpgrade"] is True
    assert response.json()["createdRecordId"] is None


def test_messages_are_sanitized_before_execution():
    executor = _executor(return_value=ChatReply(replyText="ok"))
    payload = dict(PAYLOAD, messages=[
        {"role": "assistant", "content": "<script>x()</script>"},
        {"role": "user", "content": "<script>alert(1)</script>spent 5 on coffee"},
    ])
    with patch("API_LAYER.app.chat_executor", new=executor):
        response = client.post("/chat-completion", json=payload)

    assert response.status_code == 200
    request = executor.execute.call_args.args[0]
    assert [m.content for m in request.messages] == ["spent 5 on coffee"]


# ------------------------------------------------------------
# Failure envelope
# ------------------------------------------------------------
def test_missing_user_id_is_bad_request():
    with patch("API_LAYER.app.chat_executor", new=_executor()):
        response = client.post("/chat-completion", json={"messages": PAYLOAD["messages"]})

    assert response.status_code == 400
    assert_failure_envelope(response.json(), "bad_request")


def test_assistant_only_history_is_bad_request():
    payload = dict(PAYLOAD, messages=[{"role": "assistant", "content": "hello"}])
    with patch("API_LAYER.app.chat_executor", new=_executor()):
        response = client.post("/chat-completion", json=payload)

    assert response.status_code == 400
    assert_failure_envelope(response.json(), "bad_request")


def test_user_message_that_sanitizes_to_nothing_is_bad_request():
    executor = _executor()
    payload = dict(PAYLOAD, messages=[{"role": "user", "content": "<script>alert(1)</script>"}])
    with patch("API_LAYER.app.chat_executor", new=executor):
        response = client.post("/chat-completion", json=payload)

    assert response.status_code == 400
    assert_failure_envelope(response.json(), "bad_request")
    executor.execute.assert_not_called()


def test_unavailable_when_datastore_not_connected():
    with patch("API_LAYER.app.chat_executor", new=None):
        response = client.post("/chat-completion", json=PAYLOAD)

    assert response.status_code == 503
    assert_failure_envelope(response.json(), "service_unavailable")


def test_executor_timeout_is_upstream_timeout():
    executor = _executor(side_effect=HTTPException(status_code=504, detail="Completion service timed out"))
    with patch("API_LAYER.app.chat_executor", new=executor):
        response = client.post("/chat-completion", json=PAYLOAD)

    assert response.status_code == 504
    assert_failure_envelope(response.json(), "upstream_timeout")


def test_unexpected_failure_is_internal_error():
    with patch("API_LAYER.app.chat_executor", new=_executor(side_effect=RuntimeError("boom"))):
        response = client.post("/chat-completion", json=PAYLOAD)

    assert response.status_code == 500
    assert_failure_envelope(response.json(), "internal_error")


def test_unknown_route_uses_envelope():
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert_failure_envelope(response.json(), "not_found")


# ------------------------------------------------------------
# Service endpoints
# ------------------------------------------------------------
def test_health_and_metrics():
    health = client.get("/health")
    assert health.status_code == 200
    assert "db_connected" in health.json()

    metrics = client.get("/metrics").json()
    for key in ("total", "replies", "upgrade_required", "records_created", "errors"):
        assert key in metrics

"""测试 HTTP 层：路由、状态码映射与 CORS。"""

import uuid

import pytest
from fastapi.testclient import TestClient

from twin_core.agents.gateway import CompletionGateway
from twin_core.agents.twin_agent import TwinAgent
from twin_core.api import service
from twin_core.api.app import create_app
from twin_core.config.settings import settings
from twin_core.domain.exceptions import AccessDenied, ApiError, StoreFailure
from twin_core.domain.models import ChatChoice, ChatMessage, ChatResult
from twin_core.domain.persona import PersonaProfile
from twin_core.infrastructure.storage.json_store import LocalConversationStore
from twin_core.prompts.persona import PersonaPromptBuilder


class FakeProvider:
    name = "fake"

    def __init__(self):
        self.error = None

    def chat(self, req):
        if self.error:
            raise self.error
        msg = ChatMessage(role="assistant", content="Hello from the twin")
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)])


class BrokenStore:
    def __init__(self, error):
        self._error = error

    def load(self, session_id):
        raise self._error

    def save(self, session_id, messages):
        raise self._error


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def memory_dir(tmp_path):
    return tmp_path / "memory"


def _install_agent(store, provider):
    gateway = CompletionGateway(
        provider_client=provider,
        persona_builder=PersonaPromptBuilder(PersonaProfile(facts=None)),
        model="gpt-4o-mini",
    )
    service.set_default_agent(TwinAgent(store=store, gateway=gateway))


@pytest.fixture
def client(memory_dir, provider):
    _install_agent(LocalConversationStore(memory_dir), provider)
    yield TestClient(create_app())
    service.set_default_agent(None)


def test_root_and_health(client, monkeypatch):
    monkeypatch.setattr(settings, "use_s3", False)
    monkeypatch.setattr(settings, "openai_model", "gpt-4o-mini")
    root = client.get("/").json()
    assert root == {
        "message": "AI Digital Twin API (Powered by OpenAI)",
        "memory_enabled": True,
        "storage": "local",
        "ai_model": "gpt-4o-mini",
    }
    health = client.get("/health").json()
    assert health == {"status": "healthy", "use_s3": False, "openai_model": "gpt-4o-mini"}


def test_health_reports_s3(client, monkeypatch):
    monkeypatch.setattr(settings, "use_s3", True)
    assert client.get("/health").json()["use_s3"] is True
    assert client.get("/").json()["storage"] == "S3"


def test_chat_then_conversation(client):
    resp = client.post("/chat", json={"message": "Hi"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["response"] == "Hello from the twin"
    uuid.UUID(body["session_id"])

    conv = client.get(f"/conversation/{body['session_id']}")
    assert conv.status_code == 200
    data = conv.json()
    assert data["session_id"] == body["session_id"]
    assert [m["role"] for m in data["messages"]] == ["user", "assistant"]
    assert data["messages"][0]["content"] == "Hi"


def test_chat_continues_session(client):
    first = client.post("/chat", json={"message": "Hi"}).json()
    second = client.post("/chat", json={"message": "More", "session_id": first["session_id"]}).json()
    assert second["session_id"] == first["session_id"]
    messages = client.get(f"/conversation/{first['session_id']}").json()["messages"]
    assert len(messages) == 4


def test_chat_new_session_ids_differ(client):
    a = client.post("/chat", json={"message": "Hi"}).json()["session_id"]
    b = client.post("/chat", json={"message": "Hi"}).json()["session_id"]
    assert a and b and a != b


@pytest.mark.parametrize("payload", [{"message": ""}, {}, {"message": 42}, {"session_id": "s1"}])
def test_chat_invalid_message(client, memory_dir, payload):
    resp = client.post("/chat", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}
    assert not memory_dir.exists()


def test_chat_malformed_body(client):
    resp = client.post("/chat", content=b"not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400


def test_chat_auth_failure_is_403(client, provider, memory_dir):
    provider.error = ApiError(code="API_ERROR", message="Incorrect API key provided", http_status=401)
    resp = client.post("/chat", json={"message": "Hi", "session_id": "s1"})
    assert resp.status_code == 403
    assert resp.json() == {"error": "Invalid OpenAI API key"}
    assert not (memory_dir / "s1.json").exists()


def test_chat_invalid_request_is_400(client, provider):
    provider.error = ApiError(code="API_ERROR", message="bad", http_status=400)
    resp = client.post("/chat", json={"message": "Hi"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid message format for OpenAI"}


def test_chat_rate_limited_is_500_with_retry_hint(client, provider):
    provider.error = ApiError(code="API_ERROR", message="slow down", http_status=429)
    resp = client.post("/chat", json={"message": "Hi"})
    assert resp.status_code == 500
    assert "try again later" in resp.json()["error"]


def test_chat_upstream_error_is_generic_500(client, provider):
    provider.error = ApiError(code="API_ERROR", message="secret internal detail", http_status=502)
    resp = client.post("/chat", json={"message": "Hi"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_store_failures(provider):
    _install_agent(BrokenStore(StoreFailure(code="STORE_READ_ERROR", message="disk detail")), provider)
    try:
        client = TestClient(create_app())
        resp = client.get("/conversation/s1")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}

        _install_agent(BrokenStore(AccessDenied(code="STORE_ACCESS_DENIED", message="Access denied to bucket b")), provider)
        resp = client.post("/chat", json={"message": "Hi"})
        assert resp.status_code == 403
    finally:
        service.set_default_agent(None)


def test_conversation_unknown_and_missing_id(client):
    resp = client.get("/conversation/nobody")
    assert resp.status_code == 200
    assert resp.json() == {"session_id": "nobody", "messages": []}

    resp = client.get("/conversation/")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Session ID is required"}


def test_unknown_path_is_404(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found"}


def test_cors_preflight(client, monkeypatch):
    monkeypatch.setattr(settings, "cors_origins", "http://a.example,http://b.example")
    resp = client.options("/chat", headers={"Origin": "http://b.example", "Access-Control-Request-Method": "POST"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://b.example"
    assert resp.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "*"
    assert resp.headers["access-control-max-age"] == "300"

    resp = client.options("/chat", headers={"Origin": "http://evil.example"})
    assert resp.headers["access-control-allow-origin"] == "http://a.example"


def test_cors_headers_on_normal_response(client, monkeypatch):
    monkeypatch.setattr(settings, "cors_origins", "http://a.example")
    resp = client.get("/health", headers={"Origin": "http://a.example"})
    assert resp.headers["access-control-allow-origin"] == "http://a.example"


def test_unhandled_error_keeps_cors_headers(provider, monkeypatch):
    monkeypatch.setattr(settings, "cors_origins", "http://a.example")
    _install_agent(BrokenStore(RuntimeError("db driver exploded")), provider)
    try:
        client = TestClient(create_app())
        resp = client.post("/chat", json={"message": "Hi"}, headers={"Origin": "http://a.example"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert resp.headers["access-control-allow-origin"] == "http://a.example"
    finally:
        service.set_default_agent(None)


def test_chat_bad_session_id_type(client, memory_dir):
    resp = client.post("/chat", json={"message": "Hi", "session_id": 5})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}
    assert not memory_dir.exists()


def test_get_persona_loads_once(tmp_path, monkeypatch):
    class DummySettings:
        persona_data_dir = str(tmp_path)
        use_s3 = False
        memory_dir = str(tmp_path / "memory")
        storage_label = "local"

    monkeypatch.setattr(service, "_persona", None)
    monkeypatch.setattr(service, "_store", None)
    first = service.initialize(DummySettings())
    assert isinstance(first, PersonaProfile)
    assert first.facts is None
    assert service.get_persona() is first

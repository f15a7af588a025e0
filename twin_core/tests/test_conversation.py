from datetime import datetime, timezone

from twin_core.domain.conversation import Conversation, ConversationMessage, utc_timestamp
from twin_core.domain.models import ChatChoice, ChatMessage, ChatResult


def test_models_exist():
    cm = ChatMessage(role="user", content="hi")
    assert cm.role == "user"
    msg = ConversationMessage(role="assistant", content="x", timestamp="2025-01-01T00:00:00.000Z")
    conv = Conversation(session_id="s1", messages=[msg])
    assert conv.to_dict() == {
        "session_id": "s1",
        "messages": [{"role": "assistant", "content": "x", "timestamp": "2025-01-01T00:00:00.000Z"}],
    }


def test_message_from_dict_roundtrip():
    data = {"role": "user", "content": "你好", "timestamp": "2025-03-04T05:06:07.089Z"}
    assert ConversationMessage.from_dict(data).to_dict() == data


def test_utc_timestamp_format():
    ts = utc_timestamp(datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
    assert ts == "2025-01-02T03:04:05.678Z"
    assert utc_timestamp().endswith("Z")


def test_chat_result_text():
    res = ChatResult(provider="openai", model="m", choices=[ChatChoice(index=0, message=ChatMessage(role="assistant", content="ok"))])
    assert res.text == "ok"
    assert ChatResult(provider="openai", model="m", choices=[]).text == ""

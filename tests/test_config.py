"""Tests for settings and request serialization."""

from ollama_chat.config import AppSettings
from ollama_chat.llm import ChatMessage, ChatRequest, GenerationOptions, Role, StreamStats


class TestAppSettings:
    def test_defaults(self, monkeypatch):
        for name in ("OLLAMA_URL", "MODEL_NAME", "OLLAMA_TIMEOUT", "OLLAMA_STREAM", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = AppSettings.from_env()
        assert settings.ollama_url == "http://localhost:11434/api/chat"
        assert settings.model_name == "llama2-uncensored:7b-chat"
        assert settings.stream is True
        assert settings.log_level == "WARNING"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_URL", "http://remote:11434")
        monkeypatch.setenv("MODEL_NAME", "qwen2.5:7b")
        monkeypatch.setenv("OLLAMA_TIMEOUT", "12.5")
        monkeypatch.setenv("OLLAMA_STREAM", "false")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = AppSettings.from_env()
        assert settings.ollama_url == "http://remote:11434"
        assert settings.model_name == "qwen2.5:7b"
        assert settings.request_timeout == 12.5
        assert settings.stream is False
        assert settings.log_level == "DEBUG"


class TestGenerationOptions:
    def test_absent_fields_omitted(self):
        options = GenerationOptions(temperature=0.0, penalize_newline=False, stop=["</s>"])
        assert options.to_dict() == {"temperature": 0.0, "penalize_newline": False, "stop": ["</s>"]}

    def test_empty(self):
        assert GenerationOptions().to_dict() == {}


class TestChatRequest:
    def test_empty_options_omitted(self):
        request = ChatRequest(
            model="m",
            messages=[ChatMessage(Role.USER, "hi")],
            options=GenerationOptions(),
        )
        assert request.to_payload() == {
            "model": "m",
            "stream": True,
            "messages": [{"role": "user", "content": "hi"}],
        }

    def test_message_order_preserved(self):
        messages = [
            ChatMessage(Role.SYSTEM, "s"),
            ChatMessage(Role.USER, "u1"),
            ChatMessage(Role.ASSISTANT, "a1"),
            ChatMessage(Role.USER, "u2"),
        ]
        payload = ChatRequest(model="m", messages=messages, stream=False).to_payload()
        assert [m["content"] for m in payload["messages"]] == ["s", "u1", "a1", "u2"]
        assert payload["stream"] is False


class TestStreamStats:
    def test_no_counters(self):
        assert StreamStats.from_dict({"done": True}) is None

    def test_tokens_per_second_needs_both_counters(self):
        assert StreamStats(eval_count=5).tokens_per_second is None

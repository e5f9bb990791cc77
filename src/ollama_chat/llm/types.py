"""Types for the LLM abstraction layer."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    """Author of a message in a conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatMessage:
    """A message in a chat conversation."""
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": Role(self.role).value, "content": self.content}


@dataclass
class GenerationOptions:
    """Sparse model tuning parameters.

    Every field is optional and passed through to the service untouched.
    Absent fields are left out of the serialized request so the service
    falls back to the model defaults.
    """
    num_keep: Optional[int] = None
    seed: Optional[int] = None
    num_predict: Optional[int] = None
    top_k: Optional[int] = None
    top_p: Optional[float] = None
    tfs_z: Optional[float] = None
    typical_p: Optional[float] = None
    repeat_last_n: Optional[int] = None
    temperature: Optional[float] = None
    repeat_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    mirostat: Optional[int] = None
    mirostat_tau: Optional[float] = None
    mirostat_eta: Optional[float] = None
    penalize_newline: Optional[bool] = None
    stop: Optional[list[str]] = None
    numa: Optional[bool] = None
    num_ctx: Optional[int] = None
    num_batch: Optional[int] = None
    num_gqa: Optional[int] = None
    num_gpu: Optional[int] = None
    main_gpu: Optional[int] = None
    low_vram: Optional[bool] = None
    f16_kv: Optional[bool] = None
    vocab_only: Optional[bool] = None
    use_mmap: Optional[bool] = None
    use_mlock: Optional[bool] = None
    embedding_only: Optional[bool] = None
    rope_frequency_base: Optional[float] = None
    rope_frequency_scale: Optional[float] = None
    num_thread: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass
class ChatRequest:
    """Body of one POST to the chat endpoint."""
    model: str
    messages: list[ChatMessage] = field(default_factory=list)
    stream: bool = True
    options: Optional[GenerationOptions] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "stream": self.stream,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.options is not None:
            options = self.options.to_dict()
            if options:
                payload["options"] = options
        return payload


@dataclass
class StreamStats:
    """Timing and token counters the service attaches to a response."""
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    prompt_eval_duration: Optional[int] = None
    eval_count: Optional[int] = None
    eval_duration: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> Optional["StreamStats"]:
        values = {
            f.name: data[f.name]
            for f in fields(cls)
            if isinstance(data.get(f.name), int)
        }
        if not values:
            return None
        return cls(**values)

    @property
    def tokens_per_second(self) -> Optional[float]:
        if not self.eval_count or not self.eval_duration:
            return None
        return self.eval_count / (self.eval_duration / 1e9)


@dataclass
class ChatResponse:
    """One chat envelope: a streamed chunk or a whole non-streamed reply."""
    message: ChatMessage
    done: bool = False
    model: str = ""
    created_at: str = ""
    stats: Optional[StreamStats] = None


@dataclass
class ResponseDelta:
    """Incremental piece of generated text handed from producer to consumer."""
    text: str
    done: bool = False
    stats: Optional[StreamStats] = None

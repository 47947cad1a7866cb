"""Wire models for the Assistants API (threads, runs, messages)."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

RUN_COMPLETED = "completed"
RUN_FAILURE_STATUSES = frozenset({"failed", "cancelled", "expired", "incomplete"})

MessageRole = Literal["user", "assistant"]


class FileCitation(BaseModel):
    file_id: str


class Annotation(BaseModel):
    """Citation or file-path annotation attached to a text block."""

    type: str
    text: str
    start_index: int
    end_index: int
    file_citation: Optional[FileCitation] = None


class MessageText(BaseModel):
    value: str
    annotations: List[Annotation] = Field(default_factory=list)


class MessageContent(BaseModel):
    """One typed content block of a message."""

    type: str
    text: Optional[MessageText] = None

    def to_request(self) -> Dict[str, Any]:
        """Return the block in the shape accepted by `POST /threads/{id}/messages`."""
        block: Dict[str, Any] = {"type": self.type}
        if self.text is not None:
            block["text"] = self.text.value
        return block


class Message(BaseModel):
    """A single turn of dialogue, user- or assistant-authored."""

    id: str
    object: str = "thread.message"
    created_at: int
    assistant_id: Optional[str] = None
    thread_id: str
    run_id: Optional[str] = None
    role: MessageRole
    content: List[MessageContent] = Field(default_factory=list)
    attachments: List[Any] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """Concatenated value of all text blocks."""
        return "\n".join(block.text.value for block in self.content if block.text is not None)

    def to_request(self) -> Dict[str, Any]:
        return {"role": self.role, "content": [block.to_request() for block in self.content]}


class MessageList(BaseModel):
    object: str = "list"
    data: List[Message]
    first_id: Optional[str] = None
    last_id: Optional[str] = None
    has_more: bool = False


class Thread(BaseModel):
    """Remote conversation context."""

    id: str
    object: str = "thread"
    created_at: int = 0
    metadata: Optional[Dict[str, Any]] = None


class RunError(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None


class Run(BaseModel):
    """One asynchronous assistant turn on a thread.

    `status` is kept as a plain string: the service may report values this
    client does not know about, and those are treated as non-terminal.
    """

    id: str
    object: str = "thread.run"
    created_at: int = 0
    assistant_id: Optional[str] = None
    thread_id: str
    status: str
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    failed_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    expires_at: Optional[int] = None
    last_error: Optional[RunError] = None
    usage: Optional[Dict[str, Any]] = None

    @property
    def is_completed(self) -> bool:
        return self.status == RUN_COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.is_completed or self.status in RUN_FAILURE_STATUSES


class APIErrorDetail(BaseModel):
    """Inner object of the `{"error": {...}}` failure envelope."""

    message: str
    type: Optional[str] = None
    param: Optional[Any] = None
    code: Optional[Any] = None

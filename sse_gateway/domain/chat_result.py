"""
Chat Result

Outcome of one chat attempt: either a JSON body or an SSE byte stream.
"""

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, AsyncIterator, Optional


@dataclass
class ChatResult:
    """
    Chat Result Data Class

    Exactly one of ``body`` (JSON-serializable) and ``stream`` (SSE bytes) is set.
    """

    status_code: int
    body: Any = None
    stream: Optional[AsyncIterator[bytes]] = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_stream(self) -> bool:
        return self.stream is not None

    @property
    def status_text(self) -> str:
        try:
            return HTTPStatus(self.status_code).phrase
        except ValueError:
            return ""

    def error_text(self) -> str:
        """
        Best-effort error message: the body's ``error`` (string or ``error.message``),
        then ``message``, then the HTTP status phrase.
        """
        body = self.body
        if isinstance(body, (str, bytes)):
            try:
                body = json.loads(body)
            except ValueError:
                body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, str) and error:
                return error
            if isinstance(error, dict) and isinstance(error.get("message"), str):
                return error["message"]
            if isinstance(body.get("message"), str):
                return body["message"]
        return self.status_text

    @classmethod
    def error(cls, status_code: int, message: str, error_type: str = "upstream_error") -> "ChatResult":
        return cls(
            status_code=status_code,
            body={"error": {"message": message, "type": error_type, "code": status_code}},
        )

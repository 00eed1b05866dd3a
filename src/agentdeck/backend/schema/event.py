"""Event payload schemas emitted by the terminal layer"""

import base64
from typing import Optional
from pydantic import BaseModel, Field


class PtyOutputPayload(BaseModel):
    """One chunk of terminal output, base64 encoded for transport"""
    session_id: str
    data: str = Field(..., description="Base64 encoded output bytes")

    @classmethod
    def from_bytes(cls, session_id: str, chunk: bytes) -> "PtyOutputPayload":
        return cls(session_id=session_id, data=base64.b64encode(chunk).decode("ascii"))

    def decode(self) -> bytes:
        return base64.b64decode(self.data)


class PtyExitPayload(BaseModel):
    """Termination of a session's child process"""
    session_id: str
    exit_code: Optional[int] = None
    success: bool = False

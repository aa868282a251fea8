"""
Failure taxonomy for the handoff pipeline.

None of these ever reach the end user: they are caught inside the pipeline,
logged, and turned into "no handoff" outcomes.
"""
from typing import List, Optional


class HandoffError(Exception):
    """Base class for every handoff pipeline failure."""


class MalformedRecord(HandoffError):
    """A candidate encoding did not parse as a JSON object."""

    def __init__(self, encoding: str, reason: str):
        super().__init__(f"{encoding}: {reason}")
        self.encoding = encoding
        self.reason = reason


class IncompleteRecord(HandoffError):
    """The normalized record failed the minimum-data gate."""

    def __init__(self, missing: List[str]):
        super().__init__("missing minimum data: " + ", ".join(missing))
        self.missing = list(missing)


class DuplicateSubmission(HandoffError):
    """Same payload already submitted for this conversation inside the cool-down window."""

    def __init__(self, conversation_id: str, content_hash: str):
        super().__init__(f"duplicate handoff for conversation {conversation_id}")
        self.conversation_id = conversation_id
        self.content_hash = content_hash


class DispatchFailure(HandoffError):
    """A single delivery channel failed."""

    def __init__(self, channel: str, reason: str, status: Optional[int] = None):
        super().__init__(f"[{channel}] {reason}")
        self.channel = channel
        self.reason = reason
        self.status = status


class UpstreamStreamFailure(HandoffError):
    """The conversational engine failed while producing a turn."""

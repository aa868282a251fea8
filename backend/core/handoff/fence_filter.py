"""
Fence-aware stream filter.

Removes ```fenced``` regions from an agent reply while it is still streaming.
Fragment boundaries are arbitrary, so a delimiter may arrive split across two
or three fragments. The filter holds the last two unscanned characters back
(one less than the delimiter length) until a later fragment, or the end of the
stream, proves they are not the start of a delimiter.

The state is an explicit `FenceState` and the transition is a pure function,
so the behaviour can be tested without a live stream. `StreamFilter` wraps
both for one streaming session; it must never be shared between streams.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

FENCE = "```"
CARRY_LEN = len(FENCE) - 1

FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")

# Anything that still looks like a machine payload after fence removal.
HANDOFF_MARKER_RE = re.compile(
    r'"handoff"\s*:|```\s*handoff|<\s*handoff\b|\[\[\s*/?\s*HANDOFF',
    re.IGNORECASE,
)

# A text ending that may still grow into one of the markers above.
MARKER_PREFIX_RE = re.compile(
    r'"(?:h(?:a(?:n(?:d(?:o(?:f(?:f(?:"\s*)?)?)?)?)?)?)?)?'
    r"|`{1,3}\s*(?:h(?:a(?:n(?:d(?:o(?:f(?:f)?)?)?)?)?)?)?"
    r"|<\s*(?:h(?:a(?:n(?:d(?:o(?:f(?:f)?)?)?)?)?)?)?"
    r"|\[(?:\[\s*(?:/\s*)?(?:h(?:a(?:n(?:d(?:o(?:f(?:f)?)?)?)?)?)?)?)?",
    re.IGNORECASE,
)
MARKER_START_RE = re.compile(r'["`<\[]')


class FenceMode(str, Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass(frozen=True)
class FenceState:
    mode: FenceMode = FenceMode.OUTSIDE
    carry: str = ""


def advance(state: FenceState, fragment: str) -> Tuple[FenceState, str]:
    """Feed one fragment. Returns the new state and the text safe to emit."""
    if not fragment:
        return state, ""

    buf = state.carry + fragment
    mode = state.mode
    out = []
    i = 0

    while True:
        j = buf.find(FENCE, i)
        if j == -1:
            hold_from = max(i, len(buf) - CARRY_LEN)
            if mode is FenceMode.OUTSIDE:
                out.append(buf[i:hold_from])
            # INSIDE: everything before the carry is payload, drop it
            return FenceState(mode, buf[hold_from:]), "".join(out)

        if mode is FenceMode.OUTSIDE:
            out.append(buf[i:j])
            mode = FenceMode.INSIDE
        else:
            mode = FenceMode.OUTSIDE
        i = j + len(FENCE)


def flush(state: FenceState) -> str:
    """End of stream: the carry can no longer become a delimiter."""
    if state.mode is FenceMode.OUTSIDE:
        return state.carry
    return ""


def truncate_at_marker(text: str) -> Tuple[str, bool]:
    """Cut `text` at the first handoff marker. Second item tells whether a marker was found."""
    m = HANDOFF_MARKER_RE.search(text)
    if not m:
        return text, False
    return text[:m.start()], True


def marker_prefix_start(text: str) -> int:
    """Index of the earliest suffix of `text` that could still become a marker, else len(text)."""
    for m in MARKER_START_RE.finditer(text):
        if MARKER_PREFIX_RE.fullmatch(text, m.start()):
            return m.start()
    return len(text)


class StreamFilter:
    """
    Stateful filter for one streaming session.

    Emitted text that could be the start of a handoff marker is held back
    until the next fragment or `close()` decides it. Once a marker has leaked
    past the fence removal, the rest of the stream is suppressed.
    """

    def __init__(self):
        self.state = FenceState()
        self.pending = ""
        self.suppressed = False

    def feed(self, fragment: str) -> str:
        self.state, emitted = advance(self.state, fragment)
        return self._guard(emitted, final=False)

    def close(self) -> str:
        emitted = flush(self.state)
        self.state = FenceState(self.state.mode, "")
        return self._guard(emitted, final=True)

    def _guard(self, emitted: str, final: bool) -> str:
        if self.suppressed:
            return ""
        text, self.pending = self.pending + emitted, ""
        text, found = truncate_at_marker(text)
        if found:
            self.suppressed = True
            return text
        if not final:
            hold = marker_prefix_start(text)
            text, self.pending = text[:hold], text[hold:]
        return text


def strip_fenced_blocks(text: str) -> str:
    return FENCED_BLOCK_RE.sub("", text or "")


def sanitize_text(text: str) -> str:
    """
    Non-streaming sanitizer for a complete reply.

    Runs the same state machine as the stream so that an unterminated fence
    hides everything after it, then applies the marker guard.
    """
    f = StreamFilter()
    out = f.feed(text or "") + f.close()
    return out.strip()

from typing import List, Optional


class TranscriptAccumulator:
    """Collects the unfiltered text of one agent turn for offline parsing."""

    def __init__(self):
        self._parts: List[str] = []
        self._sealed: Optional[str] = None

    def append(self, fragment: str) -> None:
        if self._sealed is not None:
            raise RuntimeError("transcript already sealed")
        if fragment:
            self._parts.append(fragment)

    def text(self) -> str:
        if self._sealed is not None:
            return self._sealed
        return "".join(self._parts)

    def seal(self) -> str:
        """Freeze the transcript at the end of the turn and return it."""
        if self._sealed is None:
            self._sealed = "".join(self._parts)
            self._parts = []
        return self._sealed

    @property
    def sealed(self) -> bool:
        return self._sealed is not None

    def __len__(self) -> int:
        return len(self.text())

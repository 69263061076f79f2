"""
Typed internal representation for placement runs.

Everything the resolver touches after sanitizing is one of these types; raw
model output never flows past Stage A as a dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class PlacementType(str, Enum):
    """Whether an image covers a whole scene or specific lines of it."""

    PHRASE = "phrase"
    STATEMENT = "statement"


@dataclass(frozen=True)
class Statement:
    id: str
    display_text: str


@dataclass(frozen=True)
class Scene:
    """A narrative unit ("phrase"). Always holds at least one statement."""

    id: str
    index: int
    statements: tuple[Statement, ...]

    @property
    def max_statement_index(self) -> int:
        return len(self.statements) - 1


@dataclass(frozen=True)
class ImageDescription:
    index: int
    description: str
    mood: str | None = None
    subjects: tuple[str, ...] = ()
    dominant_colors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ImagePlacement:
    image_index: int
    type: PlacementType
    phrase_index: int
    confidence: float
    reason: str
    statement_indices: tuple[int, ...] | None = None

    def claimed_lines(self) -> list[tuple[int, int]]:
        """(phrase_index, statement_index) keys owned by a statement placement."""
        if self.type is not PlacementType.STATEMENT or not self.statement_indices:
            return []
        return [(self.phrase_index, idx) for idx in self.statement_indices]

    def evolve(self, **changes) -> "ImagePlacement":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        payload: dict = {
            "imageIndex": self.image_index,
            "type": self.type.value,
            "phraseIndex": self.phrase_index,
            "confidence": self.confidence,
            "reason": self.reason,
        }
        if self.type is PlacementType.STATEMENT and self.statement_indices:
            payload["statementIndices"] = list(self.statement_indices)
        return payload


@dataclass
class PlacementResult:
    """Final placements plus how they were produced."""

    placements: list[ImagePlacement]
    outcome: str
    usage: dict | None = None
    failure: str | None = None
    raw_candidate_count: int = 0
    fallback_image_indices: list[int] = field(default_factory=list)

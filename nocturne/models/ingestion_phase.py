"""Ingestion phase model for reporting pipeline progress."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IngestionPhase(Enum):
    """Where an ingestion run currently is."""

    IDLE = "idle"
    SCANNING_FILES = "scanning_files"
    PROCESSING_FILES = "processing_files"
    SAVING = "saving"

    @property
    def label(self) -> str:
        """Human-readable label for status displays."""
        return _LABELS[self]

    def is_active(self) -> bool:
        """Check if a run is in progress in this phase."""
        return self is not IngestionPhase.IDLE


_LABELS = {
    IngestionPhase.IDLE: "Idle",
    IngestionPhase.SCANNING_FILES: "Scanning files...",
    IngestionPhase.PROCESSING_FILES: "Processing files...",
    IngestionPhase.SAVING: "Saving...",
}


@dataclass(frozen=True)
class PhaseUpdate:
    """A phase plus its progress fraction.

    Attributes:
        phase: Current phase.
        progress: Fraction of the phase completed, in [0, 1].
        label: Human-readable status line.
    """

    phase: IngestionPhase
    progress: float = 0.0
    label: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.progress <= 1.0:
            raise ValueError(f"progress must be within [0, 1], got {self.progress}")
        if not self.label:
            object.__setattr__(self, "label", self.phase.label)

    @classmethod
    def idle(cls) -> PhaseUpdate:
        return cls(IngestionPhase.IDLE, 0.0)

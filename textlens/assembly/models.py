from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Artifact:
    """A generated output document on disk."""

    path: Path
    file_name: str
    size_bytes: int

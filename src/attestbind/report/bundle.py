from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class ReportBundle:
    """Report files deposited by one transfer."""

    directory: Path
    bin_path: Optional[Path] = None
    json_path: Optional[Path] = None

    @classmethod
    def from_dir(cls, directory: str | Path, stem: str = "report") -> "ReportBundle":
        d = Path(directory)
        bin_path = d / f"{stem}.bin"
        json_path = d / f"{stem}.json"
        return cls(
            directory=d,
            bin_path=bin_path if bin_path.is_file() else None,
            json_path=json_path if json_path.is_file() else None,
        )

    @property
    def empty(self) -> bool:
        return self.bin_path is None and self.json_path is None

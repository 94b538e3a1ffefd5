"""Normalized result of one upsert call."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class UpsertOutcome:
    """Tagged success/failure.

    A success carries the returned rows (possibly none); a failure carries
    the error message. Build instances through ``ok()``/``failure()``.
    """

    success: bool
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, rows: List[Dict[str, Any]]) -> "UpsertOutcome":
        return cls(success=True, rows=list(rows))

    @classmethod
    def failure(cls, error: str) -> "UpsertOutcome":
        return cls(success=False, error=error)

    @property
    def status_code(self) -> int:
        return 200 if self.success else 500

    @property
    def status(self) -> str:
        return "OK" if self.success else "Error"

    def to_dict(self) -> Dict[str, Any]:
        """Node output shape: ``{success, result}`` or ``{success, error}``."""
        if self.success:
            return {"success": True, "result": self.rows}
        return {"success": False, "error": self.error}

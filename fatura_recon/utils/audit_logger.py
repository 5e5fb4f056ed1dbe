"""
Audit logging for reconciliation decisions.
"""

import json
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import structlog

from ..config import Settings, get_settings
from ..models import AuditAction, AuditEntry

logger = structlog.get_logger()


class AuditLogger:
    """
    Logger for audit trail of reconciliation decisions.
    Provides both in-memory and file-based logging.
    """

    def __init__(self, session_id: str, settings: Optional[Settings] = None):
        self.session_id = session_id
        self.entries: List[AuditEntry] = []
        self.settings = settings or get_settings()

    def log(self, entry: AuditEntry) -> None:
        """Add an audit entry."""
        self.entries.append(entry)

        logger.info(
            entry.message,
            action=entry.action.value,
            item_ids=entry.item_ids,
            statement_id=entry.statement_id,
            success=entry.success,
        )

    def record(
        self,
        action: AuditAction,
        message: str,
        item_ids: Optional[List[str]] = None,
        statement_id: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        **details,
    ) -> AuditEntry:
        """Build and log an entry in one call."""
        entry = AuditEntry(
            action=action,
            item_ids=list(item_ids or []),
            statement_id=statement_id,
            message=message,
            details=details,
            success=success,
            error_message=error_message,
        )
        self.log(entry)
        return entry

    def get_entries(
        self,
        action_filter: Optional[AuditAction] = None,
        success_only: bool = False,
    ) -> List[AuditEntry]:
        """Get filtered audit entries."""
        entries = self.entries

        if action_filter:
            entries = [e for e in entries if e.action == action_filter]

        if success_only:
            entries = [e for e in entries if e.success]

        return entries

    def export_to_file(self, output_path: Optional[Path] = None) -> Path:
        """Export audit log to JSON file."""
        if output_path is None:
            output_path = self.settings.reports_dir / f"audit_{self.session_id}.json"

        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "session_id": self.session_id,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "total_entries": len(self.entries),
            "entries": [
                {
                    "id": e.id,
                    "timestamp": e.timestamp.isoformat(),
                    "action": e.action.value,
                    "item_ids": e.item_ids,
                    "statement_id": e.statement_id,
                    "message": e.message,
                    "details": e.details,
                    "success": e.success,
                    "error_message": e.error_message,
                }
                for e in self.entries
            ],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        logger.info("Audit log exported", path=str(output_path))
        return output_path

    def summary(self) -> dict:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self.entries)
        success_count = sum(1 for e in self.entries if e.success)
        error_count = sum(1 for e in self.entries if not e.success)

        return {
            "total_entries": len(self.entries),
            "success_count": success_count,
            "error_count": error_count,
            "action_counts": dict(action_counts),
        }

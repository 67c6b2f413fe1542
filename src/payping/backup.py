"""Write export snapshots to disk."""

from __future__ import annotations

import json
from pathlib import Path

from payping.models.export import ExportSnapshot


def backup_filename(snapshot: ExportSnapshot) -> str:
    return f"payping-backup-{snapshot.exported_at.date().isoformat()}.json"


def write_backup(snapshot: ExportSnapshot, directory: Path) -> Path:
    """Write *snapshot* as pretty-printed JSON; returns the file written.

    A backup taken earlier the same day is overwritten.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / backup_filename(snapshot)
    path.write_text(json.dumps(snapshot.to_document(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path

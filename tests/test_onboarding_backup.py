from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from payping.backup import write_backup
from payping.models import Customer, ExportSnapshot
from payping.onboarding import OnboardingFlag


def test_onboarding_flag_persists(tmp_path: Path) -> None:
    flag = OnboardingFlag(tmp_path / "state")
    assert not flag.is_complete()

    flag.mark_complete()

    assert OnboardingFlag(tmp_path / "state").is_complete()
    assert json.loads(flag.path.read_text()) == {"payping_onboarding_complete": True}

    flag.reset()
    assert not flag.is_complete()


def test_corrupt_flags_file_reads_as_incomplete(tmp_path: Path) -> None:
    (tmp_path / "flags.json").write_text("{not json")
    assert not OnboardingFlag(tmp_path).is_complete()


def test_write_backup(tmp_path: Path) -> None:
    snapshot = ExportSnapshot(
        customers=[Customer(id="c1", name="Acme", total_owed=100)],
        exported_at=datetime(2026, 3, 4, 5, 6, 7, tzinfo=UTC),
    )

    path = write_backup(snapshot, tmp_path / "backups")

    assert path.name == "payping-backup-2026-03-04.json"
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == "1.0"
    assert document["exportedAt"] == "2026-03-04T05:06:07+00:00"
    assert document["customers"][0]["totalOwed"] == 100
    assert document["settings"]["payment"]["currency"] == "USD"

"""Persisted "onboarding complete" flag.

Stored as ``{"payping_onboarding_complete": true}`` in ``flags.json``
under the configured state directory, independent of any principal.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from payping._constants import ONBOARDING_FLAG_KEY

_logger = logging.getLogger(__name__)

FLAGS_FILENAME = "flags.json"


class OnboardingFlag:
    def __init__(self, state_dir: Path) -> None:
        self._path = Path(state_dir) / FLAGS_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            _logger.warning("Ignoring unreadable flags file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def is_complete(self) -> bool:
        return self._read().get(ONBOARDING_FLAG_KEY) is True

    def mark_complete(self) -> None:
        data = self._read()
        data[ONBOARDING_FLAG_KEY] = True
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def reset(self) -> None:
        data = self._read()
        if data.pop(ONBOARDING_FLAG_KEY, None) is None:
            return
        self._path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

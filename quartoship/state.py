"""Remember what was last published so identical output is not pushed again."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

STATE_FILENAME = "publish-state.json"
STATE_VERSION = 1


@dataclass
class PublishState:
    """Snapshot of the most recent successful publish."""

    version: int
    commit: str | None
    output_digest: str | None
    published_at: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "commit": self.commit,
            "output_digest": self.output_digest,
            "published_at": self.published_at,
        }

    @classmethod
    def empty(cls) -> "PublishState":
        return cls(version=STATE_VERSION, commit=None, output_digest=None, published_at=None)

    @classmethod
    def load(cls, path: Path) -> "PublishState":
        if not path.exists():
            return cls.empty()
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return cls.empty()
        if not isinstance(payload, dict):
            return cls.empty()

        return cls(
            version=int(payload.get("version") or STATE_VERSION),
            commit=payload.get("commit") or None,
            output_digest=payload.get("output_digest") or None,
            published_at=payload.get("published_at") or None,
        )

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


class PublishTracker:
    """Compare the stamped output against the last published digest."""

    def __init__(self, cache_dir: Path) -> None:
        self._state_path = cache_dir / STATE_FILENAME
        self._previous = PublishState.load(self._state_path)

    @property
    def state_path(self) -> Path:
        return self._state_path

    @property
    def previous(self) -> PublishState:
        return self._previous

    def is_unchanged(self, output_digest: str) -> bool:
        return self._previous.output_digest == output_digest

    def record(self, commit: str | None, output_digest: str) -> PublishState:
        moment = datetime.now(timezone.utc).replace(microsecond=0)
        state = PublishState(
            version=STATE_VERSION,
            commit=commit,
            output_digest=output_digest,
            published_at=moment.isoformat().replace("+00:00", "Z"),
        )
        state.save(self._state_path)
        self._previous = state
        return state

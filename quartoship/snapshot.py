"""Content digests of a rendered tree, used for determinism checks and dedup."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

TEXT_SUFFIXES = {".html", ".htm", ".xml", ".json", ".css", ".js", ".txt", ".svg", ".md"}
TIMESTAMP_PATTERNS = (
    re.compile(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?"),
    re.compile(r"<meta name=\"generator\"[^>]*>"),
    re.compile(r"<lastBuildDate>[^<]*</lastBuildDate>"),
    re.compile(r"<pubDate>[^<]*</pubDate>"),
)
TIMESTAMP_MASK = b"<timestamp>"


@dataclass(slots=True)
class SnapshotDiff:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


@dataclass(slots=True)
class OutputSnapshot:
    """Mapping of relative POSIX paths to normalized content digests."""

    files: dict[str, str] = field(default_factory=dict)

    @property
    def digest(self) -> str:
        hasher = hashlib.sha256()
        for path in sorted(self.files):
            hasher.update(path.encode("utf-8"))
            hasher.update(b"\0")
            hasher.update(self.files[path].encode("ascii"))
            hasher.update(b"\n")
        return hasher.hexdigest()

    def diff(self, other: "OutputSnapshot") -> SnapshotDiff:
        mine = set(self.files)
        theirs = set(other.files)
        return SnapshotDiff(
            added=sorted(theirs - mine),
            removed=sorted(mine - theirs),
            changed=sorted(path for path in mine & theirs if self.files[path] != other.files[path]),
        )


def snapshot_tree(root: Path, *, ignore: Iterable[str] = (), normalize: bool = True) -> OutputSnapshot:
    """Hash every file under ``root``.

    With ``normalize`` set, timestamps in text files are masked so two renders of
    the same sources compare equal; otherwise bytes are hashed verbatim.
    """
    ignored = set(ignore)
    snapshot = OutputSnapshot()
    if not root.exists():
        return snapshot
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(root).as_posix()
        if relative in ignored or path.name in ignored:
            continue
        snapshot.files[relative] = _digest_file(path, normalize)
    return snapshot


def normalize_timestamps(data: bytes) -> bytes:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        return data
    masked = text
    for pattern in TIMESTAMP_PATTERNS:
        masked = pattern.sub(TIMESTAMP_MASK.decode("ascii"), masked)
    return masked.encode("utf-8")


def _digest_file(path: Path, normalize: bool) -> str:
    data = path.read_bytes()
    if normalize and path.suffix.lower() in TEXT_SUFFIXES:
        data = normalize_timestamps(data)
    return hashlib.sha256(data).hexdigest()

"""File-backed storage for signals, the repository fingerprint and recommendations."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from lodestone.schema import Fingerprint, Recommendation, Signal

DEFAULT_ROOT = ".lodestone"

SIGNALS_FILE = "signals.jsonl"
FINGERPRINT_FILE = "fingerprint.json"
RECOMMENDATIONS_FILE = "recommendations.jsonl"
CACHE_DIR = "cache"

PathLike = Union[str, "os.PathLike[str]"]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _encode_line(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":")) + "\n"


def _json_lines(path: Path, what: str) -> Iterator[dict[str, Any]]:
    """Yield decoded JSON objects from a JSON-lines file, skipping blank lines."""
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"decode {what}: {exc}") from exc


def _atomic_write(path: Path, text: str, prefix: str, suffix: str = "") -> None:
    """Write text to a temporary file next to path, then move it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.remove(tmp_name)
        except OSError:
            pass
        raise


class FileStore:
    """Stores signals, the fingerprint and recommendations under one directory.

    Signals are appended to a JSON-lines file and deduplicated by ID; the
    fingerprint and the recommendations are replaced atomically.
    """

    def __init__(self, root: Optional[PathLike] = None) -> None:
        self.root = Path(root) if root else Path(DEFAULT_ROOT)
        try:
            (self.root / CACHE_DIR).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OSError(f"create root: {exc}") from exc
        self._lock = threading.Lock()
        self._index: Optional[set[str]] = None

    @property
    def signals_path(self) -> Path:
        return self.root / SIGNALS_FILE

    @property
    def fingerprint_path(self) -> Path:
        return self.root / FINGERPRINT_FILE

    @property
    def recommendations_path(self) -> Path:
        return self.root / RECOMMENDATIONS_FILE

    def _ensure_index(self) -> set[str]:
        if self._index is None:
            index: set[str] = set()
            if self.signals_path.exists():
                for data in _json_lines(self.signals_path, "signal"):
                    index.add(str(data.get("id", "")))
            self._index = index
        return self._index

    def append(self, sig: Signal) -> None:
        """Append a signal unless one with the same ID is already stored."""
        with self._lock:
            index = self._ensure_index()
            if sig.id in index:
                return
            with self.signals_path.open("a", encoding="utf-8") as handle:
                handle.write(_encode_line(sig.to_dict()))
            index.add(sig.id)

    def has(self, signal_id: str) -> bool:
        """Whether a signal with this ID is stored."""
        with self._lock:
            return signal_id in self._ensure_index()

    def list_since(self, since: Optional[datetime] = None) -> list[Signal]:
        """Signals captured at or after ``since``; all of them when it is None."""
        with self._lock:
            if not self.signals_path.exists():
                return []
            cutoff = _as_utc(since) if since is not None else None
            out = []
            for data in _json_lines(self.signals_path, "signal"):
                try:
                    sig = Signal.from_dict(data)
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"decode signal: {exc}") from exc
                if cutoff is not None and (
                    sig.captured_at is None or _as_utc(sig.captured_at) < cutoff
                ):
                    continue
                out.append(sig)
            return out

    def write(self, fp: Fingerprint) -> None:
        """Replace the stored fingerprint."""
        with self._lock:
            text = json.dumps(fp.to_dict(), ensure_ascii=False, indent=2) + "\n"
            path = self.fingerprint_path
            _atomic_write(path, text, prefix=path.name + ".tmp.")

    def read(self) -> Fingerprint:
        """Load the stored fingerprint; raises FileNotFoundError if there is none."""
        with self._lock:
            raw = self.fingerprint_path.read_text(encoding="utf-8")
            try:
                return Fingerprint.from_dict(json.loads(raw))
            except (json.JSONDecodeError, TypeError, ValueError) as exc:
                raise ValueError(f"decode fingerprint: {exc}") from exc

    def replace(self, recs: Iterable[Recommendation]) -> None:
        """Replace all stored recommendations with ``recs``."""
        with self._lock:
            text = "".join(_encode_line(rec.to_dict()) for rec in recs)
            _atomic_write(
                self.recommendations_path, text, prefix="recommendations-", suffix=".tmp"
            )

    def list_recommendations(self) -> list[Recommendation]:
        """All stored recommendations in stored order."""
        with self._lock:
            if not self.recommendations_path.exists():
                return []
            out = []
            for data in _json_lines(self.recommendations_path, "rec"):
                try:
                    out.append(Recommendation.from_dict(data))
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"decode rec: {exc}") from exc
            return out
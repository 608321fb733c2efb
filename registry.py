from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Iterator, List, Optional

from pydantic import ValidationError

from models import CitationRecord
from utils import now_iso, truncate

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("source_text", "source_url", "source_title", "source_author")
_FIELD_ALIASES = {
    "sourceText": "source_text",
    "sourceUrl": "source_url",
    "sourceTitle": "source_title",
    "sourceAuthor": "source_author",
}


class RegistryError(Exception):
    pass


class CitationRegistry:
    """Persistent hexId -> CitationRecord store shared across documents.

    The registry is an explicit object: construct one per storage path and
    pass it to the pipeline. Records live in memory between ``load()`` and
    ``save()``; a secondary source text -> hexId index backs ``find_by_text``.
    """

    def __init__(self, registry_path: str) -> None:
        self.registry_path = registry_path
        self._records: Dict[str, CitationRecord] = {}
        self._text_index: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, hex_id: object) -> bool:
        return hex_id in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def records(self) -> Dict[str, CitationRecord]:
        return dict(self._records)

    # ---- persistence ----

    def load(self) -> None:
        """Read the store from disk; missing or corrupt data yields an empty registry."""
        self._records = {}
        if not os.path.exists(self.registry_path):
            logger.info("Citation registry not found at %s, starting a new registry", self.registry_path)
            self._rebuild_index()
            return
        try:
            with open(self.registry_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            records: Dict[str, CitationRecord] = {}
            for key, value in raw.items():
                if not isinstance(value, dict):
                    raise ValueError(f"record {key!r} is not an object")
                data = dict(value)
                data.setdefault("hexId", key)
                record = CitationRecord.model_validate(data)
                if record.hex_id != key:
                    raise ValueError(f"record key {key!r} does not match hexId {record.hex_id!r}")
                records[key] = record
        except (OSError, ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("Citation registry at %s is unreadable (%s); starting empty", self.registry_path, e)
            self._records = {}
        else:
            self._records = records
            logger.info("Loaded %d citations from registry %s", len(records), self.registry_path)
        self._rebuild_index()

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            hex_id: record.model_dump(by_alias=True, exclude_none=True)
            for hex_id, record in self._records.items()
        }

    def save(self) -> None:
        """Write the whole registry via a temporary file moved into place.

        I/O errors propagate to the caller.
        """
        directory = os.path.dirname(os.path.abspath(self.registry_path))
        os.makedirs(directory, exist_ok=True)
        payload = json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
        fd, tmp_path = tempfile.mkstemp(
            prefix=os.path.basename(self.registry_path) + ".", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.registry_path)
        except OSError:
            logger.error("Error saving citation registry to %s", self.registry_path)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info("Citation registry saved to %s (%d citations)", self.registry_path, len(self._records))

    # ---- queries ----

    def get(self, hex_id: str) -> Optional[CitationRecord]:
        return self._records.get(hex_id)

    def find_by_text(self, source_text: Optional[str]) -> Optional[CitationRecord]:
        if not source_text:
            return None
        hex_id = self._text_index.get(source_text)
        if hex_id is None:
            return None
        return self._records.get(hex_id)

    # ---- mutations ----

    def upsert(self, hex_id: str, **fields: Any) -> CitationRecord:
        """Create or shallow-merge a record.

        Accepts snake_case or camelCase field names. ``files`` is merged as a
        set union. ``date_updated`` changes only when a value changes.
        """
        updates = {_FIELD_ALIASES.get(k, k): v for k, v in fields.items()}
        new_files: List[str] = list(updates.pop("files", None) or [])
        unknown = set(updates) - set(_MUTABLE_FIELDS)
        if unknown:
            raise RegistryError(f"Unsupported citation fields: {sorted(unknown)}")

        existing = self._records.get(hex_id)
        if existing is None:
            stamp = now_iso()
            files: List[str] = []
            for path in new_files:
                if path not in files:
                    files.append(path)
            record = CitationRecord(
                hex_id=hex_id, date_created=stamp, date_updated=stamp, files=files, **updates
            )
            self._records[hex_id] = record
            self._index_text(record)
            return record

        changes: Dict[str, Any] = {k: v for k, v in updates.items() if getattr(existing, k) != v}
        merged_files = list(existing.files)
        for path in new_files:
            if path not in merged_files:
                merged_files.append(path)
        if merged_files != existing.files:
            changes["files"] = merged_files
        if not changes:
            return existing

        changes["date_updated"] = now_iso()
        record = existing.model_copy(update=changes)
        self._records[hex_id] = record
        if "source_text" in changes:
            self._rebuild_index()
        return record

    def record_file_reference(self, hex_id: str, document_id: str) -> bool:
        """Add ``document_id`` to the record's files; True if it was added."""
        record = self._records.get(hex_id)
        if record is None or document_id in record.files:
            return False
        self._records[hex_id] = record.model_copy(
            update={"files": record.files + [document_id], "date_updated": now_iso()}
        )
        return True

    # ---- index ----

    def _index_text(self, record: CitationRecord) -> None:
        if record.source_text:
            self._text_index.setdefault(record.source_text, record.hex_id)

    def _rebuild_index(self) -> None:
        self._text_index = {}
        for record in self._records.values():
            self._index_text(record)

    # ---- reporting ----

    def summary_lines(self) -> List[str]:
        lines: List[str] = []
        for hex_id, record in self._records.items():
            lines.append(f"  - [^{hex_id}] appears in {len(record.files)} files")
            if record.source_text:
                lines.append(f"    Text: {truncate(record.source_text)}")
        return lines

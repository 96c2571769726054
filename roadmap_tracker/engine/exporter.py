"""File based exporter for canonical items (JSON lines, CSV, text)."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, Optional

from ..models import CanonicalItem

EXPORT_FORMATS = ("json", "csv", "txt")

CSV_FIELDS = [
    "id",
    "source",
    "title",
    "status",
    "category",
    "date",
    "lastModified",
    "eta",
    "upvotes",
    "network",
    "projectLead",
    "url",
]


class FileExporter:
    """Write items to a local file in one of ``EXPORT_FORMATS``."""

    def __init__(self, path: Path, fmt: str = "json") -> None:
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {fmt}")
        self.path = path
        self.format = fmt
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._csv_writer: Optional[csv.DictWriter] = None
        self._counter = 0

    def __enter__(self) -> "FileExporter":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def export(self, item: CanonicalItem) -> None:
        record = item.as_dict()
        if self.format == "json":
            json.dump(record, self._file, ensure_ascii=False)
            self._file.write("\n")
        elif self.format == "csv":
            if not self._csv_writer:
                self._csv_writer = csv.DictWriter(
                    self._file, fieldnames=CSV_FIELDS, extrasaction="ignore"
                )
                self._csv_writer.writeheader()
            self._csv_writer.writerow(record)
        else:
            self._counter += 1
            self._file.write(self._format_txt(record, index=self._counter))

    def export_many(self, items: Iterable[CanonicalItem]) -> int:
        count = 0
        for item in items:
            self.export(item)
            count += 1
        return count

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def _format_txt(self, record: dict, index: int) -> str:
        header = f"{index}. {record.get('title') or '(untitled)'} [{record.get('status')}]"
        lines = [header]
        if record.get("category"):
            lines.append(f"Category: {record['category']}")
        lines.append(f"Last updated: {record.get('lastModified')}")
        if record.get("eta"):
            lines.append(f"Target: {record['eta']}")
        summary = str(record.get("contentText") or "").strip()
        if summary:
            lines.append(summary)
        if record.get("url"):
            lines.append(f"Link: {record['url']}")
        # Separate records with a blank line
        return "\n".join(lines) + "\n\n"


__all__ = ["EXPORT_FORMATS", "FileExporter"]

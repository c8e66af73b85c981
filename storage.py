"""CSV export for admin listings."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(_cell(v) for v in value)
    if isinstance(value, Mapping):
        return str(value.get("name") or value.get("title") or value.get("id") or "")
    return str(value)


def save_records_to_csv(
    records: Iterable[Mapping[str, Any]], path: str, fields: Optional[Sequence[str]] = None
) -> int:
    rows = list(records)
    header: List[str] = list(fields) if fields else []
    if not header:
        for row in rows:
            for key in row.keys():
                if key not in header:
                    header.append(key)

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(header)
        for row in rows:
            writer.writerow([_cell(row.get(name)) for name in header])
    return len(rows)

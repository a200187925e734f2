"""
Export Pipeline - CSV/JSON output of lead records

Writes timestamped CSV and JSON files with human-readable column titles and
maintains a cumulative CSV ledger (one date-separator row per run plus an
email verification status column).
"""

import csv
import json
from datetime import datetime as dt
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..schemas import OUTPUT_COLUMNS, OutputRecord


STATUS_COLUMN = "Email Status"
NO_EMAIL = "No Email"
SEPARATOR_PREFIX = "--- "


def dedupe_records(records: Sequence[OutputRecord]) -> List[OutputRecord]:
    """Drop exact repeats of (product_url, maker_url), keeping the first."""
    seen = set()
    out: List[OutputRecord] = []
    for r in records:
        key = (r.product_url, r.maker_url)
        if key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out


class RecordExporter:
    """Write OutputRecords to CSV/JSON and append them to the ledger."""

    def __init__(self, output_dir: Union[str, Path] = "output"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _timestamped(self, prefix: str, suffix: str) -> str:
        timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
        return f"{prefix}_{timestamp}.{suffix}"

    def to_csv(self, records: Sequence[OutputRecord], filename: Optional[str] = None) -> Path:
        """
        Export records to CSV with the titled columns.

        Args:
            records: OutputRecord list in output order
            filename: Output filename (auto-generated if None)

        Returns:
            Path to created CSV file
        """
        if not records:
            raise ValueError("No records to export")
        csv_path = self.output_dir / (filename or self._timestamped("leads", "csv"))
        with open(csv_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=list(OUTPUT_COLUMNS.values()))
            writer.writeheader()
            for r in dedupe_records(records):
                writer.writerow(r.to_row())
        return csv_path

    def to_json(self, records: Sequence[OutputRecord], filename: Optional[str] = None) -> Path:
        if not records:
            raise ValueError("No records to export")
        json_path = self.output_dir / (filename or self._timestamped("leads", "json"))
        payload = {
            "export_metadata": {
                "total_records": len(records),
                "export_timestamp": dt.now().isoformat(),
                "format_version": "1.0",
            },
            "records": [r.model_dump() for r in dedupe_records(records)],
        }
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return json_path

    def append_to_ledger(
        self,
        records: Sequence[OutputRecord],
        run_date: str,
        statuses: Optional[Dict[str, str]] = None,
        ledger_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """Append a run to the cumulative ledger.

        The header is written once; every run starts with a ``--- <date> ---``
        separator row. ``statuses`` maps an email to its verification status
        (records without any email get "No Email").
        """
        path = Path(ledger_path) if ledger_path else self.output_dir / "ledger.csv"
        path.parent.mkdir(parents=True, exist_ok=True)
        header = list(OUTPUT_COLUMNS.values()) + [STATUS_COLUMN]
        new_file = not path.exists() or path.stat().st_size == 0
        statuses = statuses or {}
        with open(path, "a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if new_file:
                writer.writerow(header)
            writer.writerow([f"{SEPARATOR_PREFIX}{run_date} ---"] + [""] * (len(header) - 1))
            for r in dedupe_records(records):
                row = r.to_row()
                writer.writerow([row[c] for c in OUTPUT_COLUMNS.values()] + [self.status_for(r, statuses)])
        return path

    @staticmethod
    def status_for(record: OutputRecord, statuses: Dict[str, str]) -> str:
        emails = [e for e in (record.email, record.website_email) if e]
        if not emails:
            return NO_EMAIL
        for e in emails:
            if statuses.get(e) == "Valid":
                return "Valid"
        return statuses.get(emails[0], "Unverified")

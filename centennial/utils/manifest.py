"""
Run manifest for tracking per-page and per-edition outcomes.
Stores an append-only JSON Lines file in the archive root, one record per
page attempt and one per finished edition.
"""

import json
import os
import time
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Iterable, Set


DEFAULT_MANIFEST_NAME = "manifest.jsonl"


@dataclass
class ManifestRecord:
    edition: str  # YYYY-MM-DD subject date
    kind: str  # page|edition
    status: str  # page: renamed|converted|failed; edition: done|skipped|failed
    page: Optional[int] = None
    path: Optional[str] = None
    stage: Optional[str] = None
    error: Optional[str] = None
    recorded_at: float = 0.0


class Manifest:
    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.path = os.path.join(self.output_dir, DEFAULT_MANIFEST_NAME)

    def append(self, rec: ManifestRecord) -> None:
        if not rec.recorded_at:
            rec.recorded_at = time.time()
        os.makedirs(self.output_dir, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(json.dumps(asdict(rec), ensure_ascii=False) + "\n")

    def iter_records(self) -> Iterable[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return
        with open(self.path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except ValueError:
                    continue

    def failed_pages(self, edition: str) -> Set[int]:
        """Pages of an edition whose most recent attempt failed."""
        latest: Dict[int, str] = {}
        for rec in self.iter_records():
            if rec.get('kind') == 'page' and rec.get('edition') == edition and rec.get('page') is not None:
                latest[rec['page']] = rec.get('status')
        return {page for page, status in latest.items() if status == 'failed'}

"""Data models used throughout the acquisition pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Union


@dataclass(frozen=True, order=True)
class SubjectDate:
    """Historical calendar date, one hundred years before its origin date."""

    year: int
    month: int
    day: int

    def as_date(self) -> date:
        return date(self.year, self.month, self.day)

    @property
    def iso(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    @property
    def compact(self) -> str:
        return f"{self.year:04d}{self.month:02d}{self.day:02d}"

    def __str__(self) -> str:
        return self.iso


class PageStatus(str, Enum):
    PENDING = "pending"
    DOWNLOADED = "downloaded"
    RENAMED = "renamed"
    CONVERTED = "converted"
    FAILED = "failed"


class EditionState(str, Enum):
    INIT = "init"
    DIRECTORIES_READY = "directories_ready"
    SESSION_OPEN = "session_open"
    COUNT_DISCOVERED = "count_discovered"
    PAGES_ACQUIRED = "pages_acquired"
    SESSION_CLOSED = "session_closed"
    CONVERTED = "converted"
    MERGED = "merged"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class Page:
    index: int
    source_url: str = ""
    downloaded_path: Optional[str] = None
    renamed_path: Optional[str] = None
    image_path: Optional[str] = None
    status: PageStatus = PageStatus.PENDING
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status is PageStatus.FAILED


@dataclass
class PageSuccess:
    page: Page

    ok = True


@dataclass
class PageFailure:
    page: Page
    stage: str
    reason: str

    ok = False


PageOutcome = Union[PageSuccess, PageFailure]


@dataclass
class Edition:
    """One subject date's newspaper as it moves through the pipeline."""

    subject: SubjectDate
    archive_dir: str
    total_pages: int = 0
    pages: List[Page] = field(default_factory=list)
    outcomes: List[PageOutcome] = field(default_factory=list)
    state: EditionState = EditionState.INIT
    image_paths: List[str] = field(default_factory=list)
    merged_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed_pages(self) -> List[Page]:
        return [p for p in self.pages if p.failed]

    @property
    def good_pages(self) -> List[Page]:
        return [p for p in self.pages if not p.failed]

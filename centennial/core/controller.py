"""
Centennial Orchestrator: runs the acquisition pipeline for each subject date.

Per date: create directories, open a browser session, discover the page
count, acquire pages, close the session, convert pages to images, merge.
Dates are processed one after another; a failed date never stops the rest.
"""

from __future__ import annotations

import os
import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

from .acquirer import PageAcquirer
from .config import RunConfig
from .converter import ImageConverter
from .dates import resolve_subject_dates
from .discovery import PageCountDiscoverer
from .errors import CentennialError, MergeError, NoPagesFound
from .logger import ErrorTracker
from .merger import EditionMerger
from .models import Edition, EditionState, PageStatus, SubjectDate
from .session import EditionSession
from .viewer import ViewerProbe, ViewerUrlBuilder
from ..utils.file_manager import ArchiveManager, PAGE_IMAGE_PATTERN, page_number
from ..utils.manifest import Manifest, ManifestRecord
from ..utils.rate_limiter import RequestPacer


@dataclass
class RunReport:
    editions: List[Edition] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=lambda: {
        "editions": 0, "skipped": 0, "failed_editions": 0,
        "pages": 0, "failed_pages": 0, "images": 0, "merged": 0,
    })

    @property
    def fully_succeeded(self) -> bool:
        return self.stats["failed_editions"] == 0 and self.stats["failed_pages"] == 0


class CentennialController:
    def __init__(self,
                 config: RunConfig,
                 logger: Optional[logging.Logger] = None,
                 session_factory: Optional[Callable[[str], object]] = None,
                 error_tracker: Optional[ErrorTracker] = None,
                 converter: Optional[ImageConverter] = None,
                 merger: Optional[EditionMerger] = None,
                 probe: Optional[ViewerProbe] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.tracker = error_tracker or ErrorTracker(self.logger)
        self.archive = ArchiveManager(config.output_dir)
        self.urls = ViewerUrlBuilder(config.profile)
        self.discoverer = PageCountDiscoverer(config, urls=self.urls)
        self.acquirer = PageAcquirer(config, urls=self.urls, archive=self.archive,
                                     pacer=RequestPacer(config.page_delay), sleep=sleep)
        self.converter = converter or ImageConverter(config, archive=self.archive)
        self.merger = merger or EditionMerger(config.profile, archive=self.archive)
        self.manifest = Manifest(config.output_dir)
        self.session_factory = session_factory or (lambda directory: EditionSession(directory, config))
        self.probe = probe
        self._stop_event = threading.Event()

    def stop(self):
        """Stop after the edition currently being processed."""
        self._stop_event.set()

    def run_for(self,
                week: Optional[int] = None,
                day: Optional[Tuple[int, int]] = None,
                today: Optional[date] = None,
                whole_week: bool = False,
                progress: Optional[Callable[[object], None]] = None) -> RunReport:
        subjects = resolve_subject_dates(week=week, day=day, today=today,
                                         mode=self.config.run_mode, whole_week=whole_week)
        return self.run(subjects, progress=progress)

    def run(self, subjects: List[SubjectDate],
            progress: Optional[Callable[[object], None]] = None) -> RunReport:
        """Process each subject date in order and return the run report."""
        report = RunReport()
        self.archive.ensure_root()

        if self.config.probe:
            probe = self.probe or ViewerProbe(self.config.profile)
            try:
                if not probe.test_connection():
                    self.tracker.log_warning("Viewer host did not answer the connectivity probe",
                                             context="probe")
            finally:
                if probe is not self.probe:
                    probe.close()

        if progress:
            progress({"type": "dates", "total": len(subjects),
                      "dates": [s.iso for s in subjects]})

        for idx, subject in enumerate(subjects, 1):
            if self._stop_event.is_set():
                self.logger.info("Stop requested, not processing remaining dates")
                break
            if progress:
                progress({"type": "edition", "index": idx, "edition": subject.iso, "stage": "started"})
            try:
                edition = self.process_edition(subject, progress)
            except Exception as e:
                # Anything unexpected ends this date only
                edition = Edition(subject=subject, archive_dir=str(self.archive.edition_dir(subject)))
                self._fail(edition, e, "edition")
            report.editions.append(edition)
            self._tally(report, edition)
            if progress:
                progress({"type": "edition", "index": idx, "edition": subject.iso,
                          "stage": edition.state.value})

        self.archive.generate_index_file()
        self._finish_report(report)
        if progress:
            progress({"type": "counters", "stats": report.stats})
        return report

    def process_edition(self, subject: SubjectDate,
                        progress: Optional[Callable[[object], None]] = None) -> Edition:
        """Run one subject date through every stage. Failures are recorded on the edition."""
        edition = Edition(subject=subject, archive_dir=str(self.archive.edition_dir(subject)))
        self.logger.info(f"Scraping {self.config.profile.title} for {subject.month:02d}/{subject.day:02d}/{subject.year}")

        existing = self.archive.find_merged(edition.archive_dir)
        if existing is not None and not self.config.force:
            self.logger.info(f"Skipping {subject}: already merged ({existing.name})")
            missing = sorted(self.manifest.failed_pages(subject.iso))
            if missing:
                self.tracker.log_warning(
                    f"Merged edition is missing pages {', '.join(map(str, missing))}; "
                    f"re-run with --force to fetch them", context="resume", edition=subject.iso)
            edition.merged_path = str(existing)
            edition.state = EditionState.SKIPPED
            self._record_edition(edition)
            return edition

        try:
            self.archive.create_edition_dirs(subject)
        except OSError as e:
            return self._fail(edition, e, "directories")
        edition.state = EditionState.DIRECTORIES_READY

        try:
            with self.session_factory(edition.archive_dir) as session:
                edition.state = EditionState.SESSION_OPEN
                total = self.discoverer.discover(session, subject)
                edition.total_pages = total
                edition.state = EditionState.COUNT_DISCOVERED
                if total <= 0:
                    raise NoPagesFound(f"Could not determine total pages or no pages found for {subject}")
                self.logger.info(f"Detected {total} pages for this edition")

                self.acquirer.acquire_all(session, edition, progress)
                edition.state = EditionState.PAGES_ACQUIRED
        except CentennialError as e:
            return self._fail(edition, e, edition.state.value)
        edition.state = EditionState.SESSION_CLOSED
        self.logger.info("All PDFs downloaded")

        for outcome in edition.outcomes:
            if not outcome.ok:
                self.tracker.log_error(
                    CentennialError(outcome.reason), context=outcome.stage,
                    edition=subject.iso, page=outcome.page.index)
            self._record_page(edition, outcome.page, stage=None if outcome.ok else outcome.stage)

        self.logger.info("Converting PDFs to images...")
        edition.image_paths = [str(p) for p in self.converter.convert_edition(edition.archive_dir)]
        self._mark_converted(edition)
        edition.state = EditionState.CONVERTED
        self.logger.info("Finished converting to images")

        self.logger.info("Combining PDFs...")
        try:
            merged = self.merger.merge_edition(edition.archive_dir, subject)
        except MergeError as e:
            edition.error = str(e)
            self.tracker.log_error(e, context="merge", edition=subject.iso)
            self._record_edition(edition, status="merge_failed")
            return edition
        edition.merged_path = str(merged) if merged else None
        edition.state = EditionState.MERGED

        edition.state = EditionState.DONE
        self._record_edition(edition)
        return edition

    def _mark_converted(self, edition: Edition):
        by_index = {}
        for path in edition.image_paths:
            index = page_number(os.path.basename(path), PAGE_IMAGE_PATTERN)
            if index is not None:
                by_index[index] = path
        for page in edition.good_pages:
            if page.index in by_index:
                page.image_path = by_index[page.index]
                page.status = PageStatus.CONVERTED
                self._record_page(edition, page)

    def _fail(self, edition: Edition, error: Exception, context: str) -> Edition:
        edition.state = EditionState.FAILED
        edition.error = str(error)
        self.tracker.log_error(error, context=context, edition=edition.subject.iso)
        self._record_edition(edition)
        return edition

    def _record_page(self, edition: Edition, page, stage: Optional[str] = None):
        self._append(ManifestRecord(
            edition=edition.subject.iso, kind='page', status=page.status.value, page=page.index,
            path=page.image_path or page.renamed_path, stage=stage, error=page.error))

    def _record_edition(self, edition: Edition, status: Optional[str] = None):
        self._append(ManifestRecord(
            edition=edition.subject.iso, kind='edition', status=status or edition.state.value,
            path=edition.merged_path, error=edition.error))

    def _append(self, rec: ManifestRecord):
        try:
            self.manifest.append(rec)
        except OSError as e:
            self.logger.warning(f"Could not write manifest record: {e}")

    def _tally(self, report: RunReport, edition: Edition):
        stats = report.stats
        if edition.state is EditionState.SKIPPED:
            stats["skipped"] += 1
            return
        stats["editions"] += 1
        if edition.state is EditionState.FAILED or edition.error:
            stats["failed_editions"] += 1
        stats["pages"] += len(edition.pages)
        stats["failed_pages"] += len(edition.failed_pages)
        stats["images"] += len(edition.image_paths)
        if edition.merged_path:
            stats["merged"] += 1

    def _finish_report(self, report: RunReport):
        s = report.stats
        self.logger.info(
            f"Run complete: {s['editions']} editions ({s['failed_editions']} failed, {s['skipped']} skipped), "
            f"{s['pages'] - s['failed_pages']}/{s['pages']} pages, {s['images']} images, {s['merged']} merged"
        )
        if self.tracker.errors:
            log_dir = self.config.log_dir
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError as e:
                self.logger.warning(f"Could not create log directory {log_dir}: {e}")
                return
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.tracker.save_error_report(os.path.join(log_dir, f"error_report_{stamp}.txt"))

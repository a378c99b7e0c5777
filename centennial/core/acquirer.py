"""
Page Acquisition

Downloads every page of an edition through the viewer's own download
button, one page at a time, and files each download under its canonical
``page_NN.pdf`` name. A failure on one page is recorded as that page's
outcome and never stops its siblings.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Pattern, Set

from .config import RunConfig
from .errors import CentennialError, DownloadTimeout, PageAcquisitionError
from .models import Edition, Page, PageFailure, PageOutcome, PageStatus, PageSuccess
from .viewer import DOWNLOAD_SELECTOR, ViewerUrlBuilder
from ..utils.file_manager import ArchiveManager
from ..utils.rate_limiter import RequestPacer

PARTIAL_SUFFIXES = ('.crdownload', '.part', '.tmp')


def snapshot(directory: str) -> Set[str]:
    """Names of the regular files currently in ``directory``."""
    try:
        return {entry.name for entry in os.scandir(directory) if entry.is_file()}
    except FileNotFoundError:
        return set()


def wait_for_download(directory: str,
                      expected_name: str,
                      before: Iterable[str] = (),
                      timeout: float = 30.0,
                      poll_interval: float = 0.5,
                      sleep: Callable[[float], None] = time.sleep,
                      upstream_pattern: Optional[Pattern] = None) -> Path:
    """
    Wait until a triggered download has finished writing.

    The expected upstream name is preferred; otherwise any new, non-partial
    PDF is accepted unless it matches ``upstream_pattern`` (then it is another
    page's download). Names listed in ``before`` are never accepted. A file
    counts as complete once its size is non-zero and unchanged across two
    successive checks.

    Raises:
        DownloadTimeout: if no complete file appears within ``timeout``
    """
    before = set(before)
    deadline = time.monotonic() + timeout
    last_seen = None  # (name, size)

    while True:
        candidate = None
        expected = os.path.join(directory, expected_name)
        if expected_name not in before and os.path.isfile(expected):
            candidate = expected_name
        else:
            for name in sorted(snapshot(directory) - before):
                if name.lower().endswith(PARTIAL_SUFFIXES) or not name.lower().endswith('.pdf'):
                    continue
                if upstream_pattern is not None and upstream_pattern.match(name):
                    continue
                candidate = name
                break

        if candidate is not None:
            path = os.path.join(directory, candidate)
            try:
                size = os.path.getsize(path)
            except OSError:
                size = -1
            if size > 0 and last_seen == (candidate, size):
                return Path(path)
            last_seen = (candidate, size)
        else:
            last_seen = None

        if time.monotonic() >= deadline:
            raise DownloadTimeout(f"Download of {expected_name} did not complete within {timeout:.0f}s")
        sleep(poll_interval)


class PageAcquirer:
    """Downloads and renames pages 1..N of an edition through a browser session."""

    def __init__(self,
                 config: Optional[RunConfig] = None,
                 urls: Optional[ViewerUrlBuilder] = None,
                 archive: Optional[ArchiveManager] = None,
                 pacer: Optional[RequestPacer] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or RunConfig()
        self.urls = urls or ViewerUrlBuilder(self.config.profile)
        self.archive = archive or ArchiveManager(self.config.output_dir)
        self.pacer = pacer or RequestPacer(self.config.page_delay)
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

    def acquire_all(self, session, edition: Edition,
                    progress: Optional[Callable[[object], None]] = None) -> List[PageOutcome]:
        """
        Acquire every page of ``edition``; outcomes are also stored on the edition.
        """
        outcomes: List[PageOutcome] = []
        for index in range(1, edition.total_pages + 1):
            if progress:
                progress({"type": "page", "edition": edition.subject.iso, "index": index,
                          "total": edition.total_pages, "stage": "downloading"})
            outcome = self.acquire_page(session, edition, index)
            outcomes.append(outcome)
            edition.pages.append(outcome.page)
            if progress:
                progress({"type": "page", "edition": edition.subject.iso, "index": index,
                          "total": edition.total_pages,
                          "stage": "completed" if outcome.ok else "failed"})

        edition.outcomes.extend(outcomes)
        failed = sum(1 for o in outcomes if not o.ok)
        self.logger.info(f"Acquired {len(outcomes) - failed}/{len(outcomes)} pages for {edition.subject}")
        return outcomes

    def acquire_page(self, session, edition: Edition, index: int) -> PageOutcome:
        """Acquire one page, retrying up to ``page_retries`` extra times."""
        page = Page(index=index, source_url=self.urls.page_url(edition.subject, index))
        attempts = 1 + max(self.config.page_retries, 0)
        error: Optional[PageAcquisitionError] = None

        for attempt in range(1, attempts + 1):
            try:
                self._download_and_rename(session, edition, page)
                return PageSuccess(page)
            except PageAcquisitionError as e:
                error = e
                if attempt < attempts:
                    self.logger.warning(f"Page {index} failed at {e.stage} (attempt {attempt}/{attempts}): {e}")

        page.status = PageStatus.FAILED
        page.error = str(error)
        self.logger.error(f"Error on page {index}: {error.stage}: {error}")
        return PageFailure(page=page, stage=error.stage, reason=str(error))

    def _download_and_rename(self, session, edition: Edition, page: Page):
        index = page.index
        edition_dir = edition.archive_dir

        self.pacer.acquire()
        self.logger.info(f"Downloading page {index}...")
        self.logger.debug(f"Page {index} URL: {page.source_url}")
        self._step("navigate", index, session.goto, page.source_url)
        self._step("frame", index, session.enter_frame, self.config.frame_timeout)
        self._step("control", index, session.wait_clickable, DOWNLOAD_SELECTOR, self.config.control_timeout)

        expected_name = self.urls.upstream_filename(edition.subject, index)
        self._discard_stale(edition_dir, expected_name, index)
        before = snapshot(edition_dir)
        self._step("control", index, session.click, DOWNLOAD_SELECTOR)
        if self.config.settle_seconds > 0:
            self.sleep(self.config.settle_seconds)

        downloaded = wait_for_download(
            edition_dir,
            expected_name,
            before=before,
            timeout=self.config.download_timeout,
            poll_interval=self.config.poll_interval,
            sleep=self.sleep,
            upstream_pattern=self.urls.upstream_pattern,
        )
        page.downloaded_path = str(downloaded)
        page.status = PageStatus.DOWNLOADED

        target = self.archive.page_path(edition_dir, index)
        try:
            os.replace(downloaded, target)
        except OSError as e:
            raise PageAcquisitionError(f"Could not rename {downloaded.name}: {e}", stage="rename", page=index) from e
        page.renamed_path = str(target)
        page.status = PageStatus.RENAMED
        self.logger.info(f"Downloaded and renamed page {index} -> {target.name}")

    def _discard_stale(self, edition_dir: str, expected_name: str, index: int):
        stale = os.path.join(edition_dir, expected_name)
        if not os.path.isfile(stale):
            return
        try:
            os.remove(stale)
        except OSError as e:
            raise PageAcquisitionError(f"Could not remove stale {expected_name}: {e}", stage="download", page=index) from e
        self.logger.warning(f"Removed stale download {expected_name} before requesting page {index}")

    def _step(self, stage: str, index: int, func, *args):
        try:
            return func(*args)
        except CentennialError as e:
            raise PageAcquisitionError(str(e), stage=stage, page=index) from e

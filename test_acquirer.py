#!/usr/bin/env python3
"""
Tests for page acquisition: renaming, download completion and per-page
failure isolation.
"""

import os
import threading
import time

import pytest
from pypdf import PdfReader

from centennial.core.acquirer import PageAcquirer, wait_for_download
from centennial.core.errors import DownloadTimeout, PageAcquisitionError
from centennial.core.models import Edition, PageFailure, PageStatus, PageSuccess, SubjectDate
from centennial.core.viewer import ViewerUrlBuilder
from centennial.utils.file_manager import ArchiveManager

from conftest import FakeSession, FakeViewer, make_pdf

SUBJECT = SubjectDate(1924, 7, 4)


def _edition(config, total):
    archive = ArchiveManager(config.output_dir)
    edition_dir = archive.create_edition_dirs(SUBJECT)
    return Edition(subject=SUBJECT, archive_dir=str(edition_dir), total_pages=total)


def test_all_pages_renamed_to_canonical_names(config):
    edition = _edition(config, 3)
    session = FakeSession(edition.archive_dir, FakeViewer(pages=3))

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert all(isinstance(o, PageSuccess) for o in outcomes)
    names = sorted(os.listdir(edition.archive_dir))
    assert names == ["images", "page_01.pdf", "page_02.pdf", "page_03.pdf"]
    assert [p.status for p in edition.pages] == [PageStatus.RENAMED] * 3
    assert edition.pages[0].renamed_path.endswith("page_01.pdf")
    assert "Page1, 1924-07-04.pdf" in edition.pages[0].downloaded_path


def test_failed_page_does_not_block_siblings(config):
    edition = _edition(config, 10)
    session = FakeSession(edition.archive_dir, FakeViewer(pages=10, fail_pages={3}))

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    failures = [o for o in outcomes if isinstance(o, PageFailure)]
    assert len(failures) == 1
    assert failures[0].page.index == 3
    assert failures[0].stage == "control"
    assert edition.pages[2].status is PageStatus.FAILED
    ok = [p.index for p in edition.good_pages]
    assert ok == [1, 2, 4, 5, 6, 7, 8, 9, 10]
    assert not os.path.exists(os.path.join(edition.archive_dir, "page_03.pdf"))
    assert os.path.exists(os.path.join(edition.archive_dir, "page_10.pdf"))
    assert len(session.visited) == 10


def test_retries_are_bounded(config):
    config.page_retries = 2
    edition = _edition(config, 2)
    session = FakeSession(edition.archive_dir, FakeViewer(pages=2, fail_pages={2}))

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert [o.ok for o in outcomes] == [True, False]
    # page 1 once, page 2 three times
    assert len(session.visited) == 4


def test_download_with_unexpected_name_is_still_picked_up(config):
    edition = _edition(config, 1)
    viewer = FakeViewer(pages=1, download_name="document (1).pdf")
    session = FakeSession(edition.archive_dir, viewer)

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert outcomes[0].ok
    assert os.path.exists(os.path.join(edition.archive_dir, "page_01.pdf"))
    assert not os.path.exists(os.path.join(edition.archive_dir, "document (1).pdf"))


def test_wait_for_download_times_out(tmp_path):
    with pytest.raises(DownloadTimeout) as info:
        wait_for_download(str(tmp_path), "missing.pdf", timeout=0.05, poll_interval=0.01)
    assert isinstance(info.value, PageAcquisitionError)
    assert info.value.stage == "download"


def test_wait_for_download_ignores_partial_and_preexisting_files(tmp_path):
    (tmp_path / "old.pdf").write_bytes(b"%PDF old")
    (tmp_path / "new.pdf.crdownload").write_bytes(b"%PDF partial")
    with pytest.raises(DownloadTimeout):
        wait_for_download(str(tmp_path), "expected.pdf", before={"old.pdf"},
                          timeout=0.05, poll_interval=0.01)


def test_wait_for_download_waits_for_size_to_settle(tmp_path):
    target = tmp_path / "expected.pdf"

    def writer():
        with open(target, "wb") as f:
            for _ in range(5):
                f.write(b"x" * 1024)
                f.flush()
                time.sleep(0.01)

    thread = threading.Thread(target=writer)
    thread.start()
    path = wait_for_download(str(tmp_path), "expected.pdf", timeout=5, poll_interval=0.1)
    thread.join()
    assert path == target
    assert os.path.getsize(path) == 5 * 1024


def test_download_timeout_marks_page_failed(config):
    config.download_timeout = 0.05

    class NoFileSession(FakeSession):
        def click(self, selector):
            self.clicks += 1

    edition = _edition(config, 2)
    session = NoFileSession(edition.archive_dir, FakeViewer(pages=2))
    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert [o.ok for o in outcomes] == [False, False]
    assert {o.stage for o in outcomes} == {"download"}
    assert session.clicks == 2


class ShiftedDownloadSession(FakeSession):
    """Each click delivers the previous page's file; the first click delivers nothing."""

    def click(self, selector):
        self.clicks += 1
        if self._page > 1:
            name = f"{self.viewer.title}, Page{self._page - 1}, {self._date}.pdf"
            make_pdf(os.path.join(self.download_dir, name), f"Page {self._page - 1} of {self._date}")


def test_late_download_of_another_page_is_not_filed_under_this_page(config):
    config.download_timeout = 0.1
    edition = _edition(config, 2)
    session = ShiftedDownloadSession(edition.archive_dir, FakeViewer(pages=2))

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert [(o.page.index, o.ok) for o in outcomes] == [(1, False), (2, False)]
    assert {o.stage for o in outcomes} == {"download"}
    assert not os.path.exists(os.path.join(edition.archive_dir, "page_02.pdf"))
    assert os.path.exists(os.path.join(edition.archive_dir,
                                       "Cedar Rapids Evening Gazette, Page1, 1924-07-04.pdf"))


def test_wait_for_download_skips_other_pages_upstream_names(tmp_path):
    pattern = ViewerUrlBuilder().upstream_pattern
    (tmp_path / "Cedar Rapids Evening Gazette, Page1, 1924-07-04.pdf").write_bytes(b"%PDF page one")
    with pytest.raises(DownloadTimeout):
        wait_for_download(str(tmp_path), "Cedar Rapids Evening Gazette, Page2, 1924-07-04.pdf",
                          timeout=0.05, poll_interval=0.01, upstream_pattern=pattern)


def test_wait_for_download_rejects_expected_name_left_from_earlier(tmp_path):
    (tmp_path / "expected.pdf").write_bytes(b"%PDF stale")
    with pytest.raises(DownloadTimeout):
        wait_for_download(str(tmp_path), "expected.pdf", before={"expected.pdf"},
                          timeout=0.05, poll_interval=0.01)


def test_stale_upstream_file_is_replaced_by_fresh_download(config):
    edition = _edition(config, 1)
    stale = os.path.join(edition.archive_dir, "Cedar Rapids Evening Gazette, Page1, 1924-07-04.pdf")
    make_pdf(stale, "stale copy")
    session = FakeSession(edition.archive_dir, FakeViewer(pages=1))

    outcomes = PageAcquirer(config).acquire_all(session, edition)

    assert outcomes[0].ok
    text = PdfReader(os.path.join(edition.archive_dir, "page_01.pdf")).pages[0].extract_text()
    assert text.strip() == "Page 1 of 1924-07-04"
    assert not os.path.exists(stale)


if __name__ == "__main__":
    import sys
    sys.exit(pytest.main([__file__, "-v"]))

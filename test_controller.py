#!/usr/bin/env python3
"""
Pipeline tests: full edition runs against a scripted viewer, with poppler
replaced by a stub renderer.
"""

import os
from datetime import date

import pytest
from PIL import Image
from pypdf import PdfReader

from centennial.core import converter as converter_module
from centennial.core.controller import CentennialController
from centennial.core.dates import resolve_subject_dates
from centennial.core.models import EditionState, SubjectDate
from centennial.utils.manifest import Manifest

from conftest import BrokenSession, FakeSession, FakeViewer

MERGED = "Cedar_Rapids_Evening_Gazette_1924-07-04_Complete.pdf"


@pytest.fixture(autouse=True)
def stub_renderer(monkeypatch):
    def fake_convert_from_path(pdf_path, **kwargs):
        return [Image.new("RGB", kwargs["size"], "white")]
    monkeypatch.setattr(converter_module, "convert_from_path", fake_convert_from_path)


@pytest.fixture
def small_config(config):
    config.image_size = (24, 36)
    return config


class SessionRecorder:
    """Session factory that hands out scripted sessions and keeps them for inspection."""

    def __init__(self, *viewers, session_cls=FakeSession):
        self.viewers = list(viewers)
        self.session_cls = session_cls
        self.sessions = []

    def __call__(self, download_dir):
        viewer = self.viewers.pop(0) if len(self.viewers) > 1 else self.viewers[0]
        session = self.session_cls(download_dir, viewer)
        self.sessions.append(session)
        return session


def _edition_statuses(config):
    return {rec["edition"]: rec["status"]
            for rec in Manifest(config.output_dir).iter_records() if rec["kind"] == "edition"}


def _page_texts(path):
    return [page.extract_text().strip() for page in PdfReader(str(path)).pages]


def test_single_day_run_produces_images_and_merged_edition(small_config):
    factory = SessionRecorder(FakeViewer(pages=5))
    controller = CentennialController(small_config, session_factory=factory)
    subjects = resolve_subject_dates(day=(7, 4), today=date(2024, 7, 4))

    report = controller.run(subjects)

    edition_dir = os.path.join(small_config.output_dir, "1924-07-04")
    assert sorted(os.listdir(os.path.join(edition_dir, "images"))) == \
        [f"page_{n:02d}.png" for n in range(1, 6)]
    assert _page_texts(os.path.join(edition_dir, MERGED)) == \
        [f"Page {n} of 1924-07-04" for n in range(1, 6)]
    assert not any(name.endswith(".pdf") and name != MERGED for name in os.listdir(edition_dir))

    edition = report.editions[0]
    assert edition.state is EditionState.DONE
    assert edition.total_pages == 5
    assert report.stats["pages"] == 5
    assert report.stats["images"] == 5
    assert report.stats["merged"] == 1
    assert report.fully_succeeded
    assert factory.sessions[0].closed
    assert os.path.exists(os.path.join(small_config.output_dir, "index.html"))
    assert _edition_statuses(small_config) == {"1924-07-04": "done"}


def test_unreadable_page_count_abandons_edition(small_config):
    factory = SessionRecorder(FakeViewer(label="N/A"))
    controller = CentennialController(small_config, session_factory=factory)

    report = controller.run([SubjectDate(1924, 7, 4)])

    edition = report.editions[0]
    assert edition.state is EditionState.FAILED
    assert edition.total_pages == 0
    session = factory.sessions[0]
    assert len(session.visited) == 1
    assert session.clicks == 0
    assert session.closed
    assert report.stats["failed_editions"] == 1
    assert not report.fully_succeeded
    assert _edition_statuses(small_config) == {"1924-07-04": "failed"}


def test_page_count_timeout_abandons_edition(small_config):
    factory = SessionRecorder(FakeViewer(no_selector=True))
    report = CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])
    assert report.editions[0].state is EditionState.FAILED
    assert factory.sessions[0].closed


def test_failed_page_is_isolated(small_config):
    factory = SessionRecorder(FakeViewer(pages=10, fail_pages={3}))
    controller = CentennialController(small_config, session_factory=factory)

    report = controller.run([SubjectDate(1924, 7, 4)])

    edition = report.editions[0]
    assert edition.state is EditionState.DONE
    assert [p.index for p in edition.failed_pages] == [3]
    texts = _page_texts(os.path.join(small_config.output_dir, "1924-07-04", MERGED))
    assert texts == [f"Page {n} of 1924-07-04" for n in range(1, 11) if n != 3]
    assert report.stats["failed_pages"] == 1
    assert report.stats["images"] == 9
    assert not report.fully_succeeded
    assert Manifest(small_config.output_dir).failed_pages("1924-07-04") == {3}


def test_session_failure_does_not_stop_next_date(small_config):
    broken = SessionRecorder(FakeViewer(pages=2), session_cls=BrokenSession)
    working = SessionRecorder(FakeViewer(pages=2))
    calls = []

    def factory(download_dir):
        calls.append(download_dir)
        return broken(download_dir) if len(calls) == 1 else working(download_dir)

    controller = CentennialController(small_config, session_factory=factory)
    report = controller.run([SubjectDate(1924, 7, 4), SubjectDate(1924, 7, 5)])

    assert [e.state for e in report.editions] == [EditionState.FAILED, EditionState.DONE]
    assert "chrome not found" in report.editions[0].error
    assert os.path.exists(os.path.join(small_config.output_dir, "1924-07-05",
                                       "Cedar_Rapids_Evening_Gazette_1924-07-05_Complete.pdf"))
    assert controller.tracker.errors
    assert any(name.startswith("error_report_") for name in os.listdir(small_config.log_dir))


def test_merged_edition_is_skipped_unless_forced(small_config):
    factory = SessionRecorder(FakeViewer(pages=2))
    CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])
    assert len(factory.sessions) == 1

    report = CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])
    assert report.editions[0].state is EditionState.SKIPPED
    assert report.stats["skipped"] == 1
    assert len(factory.sessions) == 1

    small_config.force = True
    report = CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])
    assert report.editions[0].state is EditionState.DONE
    assert len(factory.sessions) == 2


def test_skipped_edition_with_missing_pages_is_reported(small_config):
    factory = SessionRecorder(FakeViewer(pages=4, fail_pages={2}))
    CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])

    controller = CentennialController(small_config, session_factory=factory)
    report = controller.run([SubjectDate(1924, 7, 4)])

    assert report.editions[0].state is EditionState.SKIPPED
    assert len(controller.tracker.warnings) == 1
    assert "missing pages 2" in controller.tracker.warnings[0].message


def test_skipped_complete_edition_raises_no_warning(small_config):
    factory = SessionRecorder(FakeViewer(pages=2))
    CentennialController(small_config, session_factory=factory).run([SubjectDate(1924, 7, 4)])

    controller = CentennialController(small_config, session_factory=factory)
    controller.run([SubjectDate(1924, 7, 4)])

    assert controller.tracker.warnings == []


def test_stop_prevents_further_dates(small_config):
    factory = SessionRecorder(FakeViewer(pages=1))
    controller = CentennialController(small_config, session_factory=factory)
    controller.stop()
    report = controller.run([SubjectDate(1924, 7, 4)])
    assert report.editions == []
    assert factory.sessions == []


def test_progress_events(small_config):
    events = []
    controller = CentennialController(small_config, session_factory=SessionRecorder(FakeViewer(pages=2)))
    controller.run([SubjectDate(1924, 7, 4)], progress=events.append)

    assert events[0] == {"type": "dates", "total": 1, "dates": ["1924-07-04"]}
    page_events = [e for e in events if e["type"] == "page" and e["stage"] == "completed"]
    assert [e["index"] for e in page_events] == [1, 2]
    assert events[-1]["type"] == "counters"


class DeadProbe:
    def test_connection(self):
        return False


def test_failed_probe_only_warns(small_config):
    small_config.probe = True
    controller = CentennialController(small_config, probe=DeadProbe(),
                                      session_factory=SessionRecorder(FakeViewer(pages=1)))
    report = controller.run([SubjectDate(1924, 7, 4)])
    assert report.editions[0].state is EditionState.DONE
    assert controller.tracker.warnings


if __name__ == "__main__":
    import sys
    sys.exit(pytest.main([__file__, "-v"]))

"""
Shared test fixtures: a scripted stand-in for the browser session and
helpers that build small real PDFs with ReportLab.
"""

import os
from urllib.parse import urlparse, parse_qs

import pytest
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from centennial.core.config import RunConfig
from centennial.core.errors import ControlTimeout, SessionError
from centennial.core.viewer import DOWNLOAD_SELECTOR, PAGE_SELECT_SELECTOR


def make_pdf(path, text):
    """Write a one-page PDF whose only content is ``text``."""
    c = canvas.Canvas(str(path), pagesize=letter)
    c.drawString(100, 700, text)
    c.save()
    return path


class FakeViewer:
    """What the upstream viewer shows for one edition."""

    def __init__(self, pages=5, label=None, fail_pages=(), no_selector=False,
                 title="Cedar Rapids Evening Gazette", download_name=None):
        self.pages = pages
        self.label = label
        self.fail_pages = set(fail_pages)
        self.no_selector = no_selector
        self.title = title
        self.download_name = download_name

    def select_html(self):
        if self.label is not None:
            options = f'<option value="1">{self.label}</option>'
        else:
            options = "".join(f'<option value="{i}">{i}/{self.pages}</option>'
                              for i in range(1, self.pages + 1))
        return f'<html><body><select id="drpGoToPage">{options}</select></body></html>'


class FakeSession:
    """Implements the EditionSession surface against a FakeViewer."""

    def __init__(self, download_dir, viewer):
        self.download_dir = str(download_dir)
        self.viewer = viewer
        self.opened = False
        self.closed = False
        self.visited = []
        self.clicks = 0
        self._page = None
        self._date = None

    def __enter__(self):
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    def goto(self, url, wait_for_idle=False, timeout=None):
        self.visited.append(url)
        fn = parse_qs(urlparse(url).query)['fn'][0]
        parts = fn.split('_')
        self._page = int(parts[-1])
        ymd = parts[-3]
        self._date = f"{ymd[:4]}-{ymd[4:6]}-{ymd[6:]}"

    def enter_frame(self, timeout):
        pass

    def wait_visible(self, selector, timeout):
        assert selector == PAGE_SELECT_SELECTOR
        if self.viewer.no_selector:
            raise ControlTimeout(f"{selector} not visible within {timeout:.0f}s")

    def wait_clickable(self, selector, timeout):
        assert selector == DOWNLOAD_SELECTOR
        if self._page in self.viewer.fail_pages:
            raise ControlTimeout(f"{selector} not clickable within {timeout:.0f}s")

    def click(self, selector):
        self.clicks += 1
        name = self.viewer.download_name or f"{self.viewer.title}, Page{self._page}, {self._date}.pdf"
        make_pdf(os.path.join(self.download_dir, name), f"Page {self._page} of {self._date}")

    @property
    def page_source(self):
        return self.viewer.select_html()


class BrokenSession(FakeSession):
    def __enter__(self):
        raise SessionError("Could not launch browser: chrome not found")


@pytest.fixture
def config(tmp_path):
    return RunConfig(
        output_dir=str(tmp_path / "archive"),
        log_dir=str(tmp_path / "logs"),
        page_delay=0.0,
        poll_interval=0.01,
        download_timeout=2.0,
        probe=False,
    )

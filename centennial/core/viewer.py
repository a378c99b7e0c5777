"""
Viewer Adapter

Everything that depends on how the upstream document viewer is addressed
and marked up: the per-page viewer URL, the filename its download button
produces, the page-selection control's label format, and a lightweight
reachability check of the viewer host.
"""

import re
import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from bs4 import BeautifulSoup

from .config import PublicationProfile
from .dates import date_range_token
from .models import SubjectDate

PAGE_SELECT_ID = "drpGoToPage"
PAGE_SELECT_SELECTOR = f"#{PAGE_SELECT_ID}"
DOWNLOAD_SELECTOR = "#download"
VIEWER_FRAME_SELECTOR = "iframe"


class ViewerUrlBuilder:
    """Builds viewer URLs and upstream download names for one publication."""

    def __init__(self, profile: Optional[PublicationProfile] = None):
        self.profile = profile or PublicationProfile()

    def edition_stem(self, subject: SubjectDate, page: int) -> str:
        p = self.profile
        return f"{p.filename_stem}_{subject.compact}_{p.locale}_{page}"

    def page_url(self, subject: SubjectDate, page: int) -> str:
        """
        Viewer URL for one page of an edition.

        The query pins the subject year, the archive start year, the widened
        date window, the result ordering and the page's filename stem.
        """
        p = self.profile
        params = [
            ('k', p.keyword),
            ('i', 'f'),
            ('by', subject.year),
            ('bdd', p.archive_start_year),
            ('d', date_range_token(subject)),
            ('m', 'between'),
            ('ord', p.ordering_key),
            ('fn', self.edition_stem(subject, page)),
            ('df', 1),
            ('dt', 10),
        ]
        return f"https://{p.host}/viewer/?{urlencode(params)}"

    def first_page_url(self, subject: SubjectDate) -> str:
        return self.page_url(subject, 1)

    def upstream_filename(self, subject: SubjectDate, page: int) -> str:
        """Name the viewer gives a downloaded page, e.g. ``Title, Page3, 1924-07-04.pdf``."""
        return f"{self.profile.title}, Page{page}, {subject.iso}.pdf"

    @property
    def upstream_pattern(self) -> re.Pattern:
        """Matches any upstream page name; groups are page, year, month, day."""
        title = re.escape(self.profile.title)
        return re.compile(rf'^{title}, Page(\d+), (\d{{4}})-(\d{{2}})-(\d{{2}})\.pdf$')


class PageSelectParser:
    """
    Reads the edition's page count from the viewer's page-selection control.

    The control is a ``<select>`` whose options are labelled ``<current>/<total>``;
    the last option carries the total. Anything else yields 0.
    """

    LABEL_PATTERN = re.compile(r'\d+/(\d+)')

    def __init__(self, select_id: str = PAGE_SELECT_ID):
        self.select_id = select_id

    def parse_label(self, label: str) -> int:
        match = self.LABEL_PATTERN.search(label or "")
        return int(match.group(1)) if match else 0

    def total_pages(self, html: str) -> int:
        soup = BeautifulSoup(html or "", 'html.parser')
        select = soup.find('select', id=self.select_id)
        if select is None:
            return 0
        options = select.find_all('option')
        if not options:
            return 0
        return self.parse_label(options[-1].get_text(strip=True))


class ViewerProbe:
    """
    Checks that the viewer host answers before a browser is launched.

    A failed probe is only a warning; the browser may still get through
    where a plain HTTP client is turned away.
    """

    def __init__(self, profile: Optional[PublicationProfile] = None, timeout: float = 10.0):
        self.profile = profile or PublicationProfile()
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': self.profile.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        })

    def test_connection(self) -> bool:
        """
        Returns:
            True if the viewer host answered with a non-server-error status
        """
        url = f"https://{self.profile.host}/viewer/"
        try:
            response = self.session.head(url, timeout=self.timeout, allow_redirects=True)
            self.logger.debug(f"Probe {url} -> HTTP {response.status_code}")
            return response.status_code < 500
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"Viewer host unreachable ({url}): {e}")
            return False

    def close(self):
        self.session.close()

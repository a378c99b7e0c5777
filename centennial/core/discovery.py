"""Page-count discovery for one edition."""

from __future__ import annotations

import logging
from typing import Optional

from .config import RunConfig
from .errors import ControlTimeout, DiscoveryTimeout
from .models import SubjectDate
from .viewer import PAGE_SELECT_SELECTOR, PageSelectParser, ViewerUrlBuilder


class PageCountDiscoverer:
    """Loads an edition's first page and reads how many pages it has."""

    def __init__(self,
                 config: Optional[RunConfig] = None,
                 urls: Optional[ViewerUrlBuilder] = None,
                 parser: Optional[PageSelectParser] = None):
        self.config = config or RunConfig()
        self.urls = urls or ViewerUrlBuilder(self.config.profile)
        self.parser = parser or PageSelectParser()
        self.logger = logging.getLogger(__name__)

    def discover(self, session, subject: SubjectDate) -> int:
        """
        Returns:
            Total page count, or 0 when the control's label is unreadable

        Raises:
            DiscoveryTimeout: if the viewer frame or page-selection control never shows up
        """
        url = self.urls.first_page_url(subject)
        self.logger.info(f"Loading first page of {subject} to determine total pages...")
        self.logger.debug(f"Initial URL: {url}")

        try:
            session.goto(url, wait_for_idle=True, timeout=self.config.navigation_timeout)
            session.enter_frame(self.config.navigation_timeout)
            session.wait_visible(PAGE_SELECT_SELECTOR, self.config.discovery_timeout)
        except ControlTimeout as e:
            raise DiscoveryTimeout(f"Page selector never appeared for {subject}: {e}") from e

        total = self.parser.total_pages(session.page_source)
        if total:
            self.logger.info(f"Found page selector with {total} pages")
        else:
            self.logger.warning(f"Page selector for {subject} did not report a page count")
        return total

"""
Browser Session

One headless Chrome instance scoped to a single edition. Downloads land in
the edition's archive directory and every request goes out with the
profile's user agent. Selenium failures are translated into the pipeline's
own exceptions so callers never depend on the driver's exception types.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .config import RunConfig
from .errors import ControlTimeout, SessionError
from .viewer import VIEWER_FRAME_SELECTOR


class EditionSession:
    """
    Automated browser scoped to one edition.

    Use as a context manager; the browser is always quit on exit, including
    when discovery or acquisition raised.
    """

    def __init__(self, download_dir: str, config: Optional[RunConfig] = None):
        self.download_dir = os.path.abspath(download_dir)
        self.config = config or RunConfig()
        self.logger = logging.getLogger(__name__)
        self.driver = None

    def _build_options(self) -> Options:
        profile = self.config.profile
        options = Options()
        options.add_experimental_option("excludeSwitches", ["enable-logging", "enable-automation"])
        if self.config.headless:
            options.add_argument("--headless=new")
        width, height = profile.viewport
        options.add_argument(f"--window-size={width},{height}")
        options.add_argument(f"--user-agent={profile.user_agent}")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_experimental_option("prefs", {
            "download.default_directory": self.download_dir,
            "download.prompt_for_download": False,
            "download.directory_upgrade": True,
            "plugins.always_open_pdf_externally": True,
        })
        return options

    def open(self) -> "EditionSession":
        if self.driver is not None:
            return self
        try:
            self.driver = webdriver.Chrome(options=self._build_options())
            # Headless Chrome ignores the download prefs without this
            self.driver.execute_cdp_cmd("Page.setDownloadBehavior", {
                "behavior": "allow",
                "downloadPath": self.download_dir,
            })
            self.driver.set_page_load_timeout(self.config.navigation_timeout)
        except WebDriverException as e:
            self.close()
            raise SessionError(f"Could not launch browser: {e.msg or e}") from e
        self.logger.debug(f"Browser session opened (downloads -> {self.download_dir})")
        return self

    def close(self):
        """Quit the browser. Teardown errors are logged, never raised."""
        driver, self.driver = self.driver, None
        if driver is None:
            return
        try:
            driver.quit()
            self.logger.debug("Browser session closed")
        except WebDriverException as e:
            self.logger.error(f"Browser teardown failed: {e.msg or e}")

    def __enter__(self) -> "EditionSession":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _require_driver(self):
        if self.driver is None:
            raise SessionError("Browser session is not open")
        return self.driver

    def goto(self, url: str, wait_for_idle: bool = False, timeout: Optional[float] = None):
        """Navigate the top-level page; optionally wait for the document to finish loading."""
        driver = self._require_driver()
        try:
            driver.switch_to.default_content()
            driver.get(url)
            if wait_for_idle:
                WebDriverWait(driver, timeout or self.config.navigation_timeout).until(
                    lambda d: d.execute_script("return document.readyState") == "complete"
                )
        except TimeoutException as e:
            raise ControlTimeout(f"Timed out loading {url}") from e
        except WebDriverException as e:
            raise SessionError(f"Navigation to {url} failed: {e.msg or e}") from e

    def enter_frame(self, timeout: float):
        """Switch into the embedded viewer frame once it is available."""
        driver = self._require_driver()
        try:
            driver.switch_to.default_content()
            WebDriverWait(driver, timeout).until(
                EC.frame_to_be_available_and_switch_to_it((By.CSS_SELECTOR, VIEWER_FRAME_SELECTOR))
            )
        except TimeoutException as e:
            raise ControlTimeout(f"Viewer frame did not load within {timeout:.0f}s") from e
        except WebDriverException as e:
            raise SessionError(f"Could not enter viewer frame: {e.msg or e}") from e

    def wait_visible(self, selector: str, timeout: float):
        driver = self._require_driver()
        try:
            return WebDriverWait(driver, timeout).until(
                EC.visibility_of_element_located((By.CSS_SELECTOR, selector))
            )
        except TimeoutException as e:
            raise ControlTimeout(f"{selector} not visible within {timeout:.0f}s") from e
        except WebDriverException as e:
            raise SessionError(f"Waiting for {selector} failed: {e.msg or e}") from e

    def wait_clickable(self, selector: str, timeout: float):
        driver = self._require_driver()
        try:
            return WebDriverWait(driver, timeout).until(
                EC.element_to_be_clickable((By.CSS_SELECTOR, selector))
            )
        except TimeoutException as e:
            raise ControlTimeout(f"{selector} not clickable within {timeout:.0f}s") from e
        except WebDriverException as e:
            raise SessionError(f"Waiting for {selector} failed: {e.msg or e}") from e

    def click(self, selector: str):
        driver = self._require_driver()
        try:
            driver.find_element(By.CSS_SELECTOR, selector).click()
        except WebDriverException as e:
            raise SessionError(f"Could not click {selector}: {e.msg or e}") from e

    @property
    def page_source(self) -> str:
        """HTML of the current browsing context (the viewer frame after ``enter_frame``)."""
        driver = self._require_driver()
        try:
            return driver.page_source or ""
        except WebDriverException as e:
            raise SessionError(f"Could not read page source: {e.msg or e}") from e

"""
Edition Merging

Concatenates the per-page documents of an edition, in numeric page order,
into one ``<Name>_YYYY-MM-DD_Complete.pdf`` and removes the per-page files
once the combined document is safely on disk. If anything goes wrong the
per-page files are left untouched so the merge can simply be re-run.
"""

import logging
import os
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pypdf import PdfWriter
from pypdf.errors import PyPdfError

from .config import PublicationProfile
from .errors import MergeError
from .models import SubjectDate
from .viewer import ViewerUrlBuilder
from ..utils.file_manager import ArchiveManager, merged_filename, sorted_pages


class EditionMerger:
    """Combines page PDFs into a single edition document."""

    def __init__(self, profile: Optional[PublicationProfile] = None, archive: Optional[ArchiveManager] = None):
        self.profile = profile or PublicationProfile()
        self.archive = archive or ArchiveManager()
        self.logger = logging.getLogger(__name__)
        self.pool_pattern = ViewerUrlBuilder(self.profile).upstream_pattern

    def combine(self, sources: Sequence[Path], output_path: Path) -> Path:
        """
        Write ``sources`` (already ordered) into ``output_path``.

        The document is built in a temporary file next to the target and
        moved into place only once fully written.

        Raises:
            MergeError: if any source cannot be read or the output cannot be written
        """
        output_path = Path(output_path)
        try:
            fd, tmp_path = tempfile.mkstemp(suffix='.pdf.tmp', dir=str(output_path.parent))
            os.close(fd)
        except OSError as e:
            raise MergeError(f"Cannot write to {output_path.parent}: {e}") from e
        writer = PdfWriter()
        try:
            for source in sources:
                self.logger.debug(f"Processing: {Path(source).name}")
                writer.append(str(source))
            with open(tmp_path, 'wb') as f:
                writer.write(f)
            os.replace(tmp_path, output_path)
        except (PyPdfError, OSError, ValueError) as e:
            raise MergeError(f"Could not combine into {output_path.name}: {e}") from e
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        return output_path

    def _remove_sources(self, sources: Sequence[Path]):
        for source in sources:
            try:
                os.remove(source)
                self.logger.debug(f"Deleted: {Path(source).name}")
            except OSError as e:
                self.logger.warning(f"Could not delete {Path(source).name}: {e}")

    def merge_edition(self, edition_dir, subject: SubjectDate) -> Optional[Path]:
        """
        Merge ``page_NN.pdf`` files of a dated edition directory.

        Returns:
            Path of the merged document, or None if there was nothing to merge

        Raises:
            MergeError: if combining failed (per-page files are kept)
        """
        edition_dir = Path(edition_dir)
        sources = self.archive.list_page_files(edition_dir)
        if not sources:
            self.logger.info(f"No page files to merge in {edition_dir}")
            return None

        output_path = edition_dir / merged_filename(self.profile.merged_stem, subject)
        self.logger.info(f"Starting PDF combination for {subject}: {len(sources)} files")
        self.combine(sources, output_path)
        self.logger.info(f"Combined PDF saved as: {output_path.name}")
        self._remove_sources(sources)
        return output_path

    def collect_pool(self, pool_dir) -> Dict[SubjectDate, List[Path]]:
        """Group upstream-named page files at the top of ``pool_dir`` by date, pages sorted."""
        groups: Dict[SubjectDate, List[Path]] = defaultdict(list)
        pool_dir = Path(pool_dir)
        if not pool_dir.is_dir():
            return {}
        for path in pool_dir.iterdir():
            match = self.pool_pattern.match(path.name)
            if match and path.is_file():
                year, month, day = (int(g) for g in match.groups()[1:])
                groups[SubjectDate(year, month, day)].append(path)
        return {subject: sorted_pages(files, self.pool_pattern) for subject, files in sorted(groups.items())}

    def merge_pool(self, pool_dir) -> List[Path]:
        """
        Merge loose upstream-named page files (un-dated layout), one document per date.

        A failing date is logged and skipped; other dates still merge.

        Returns:
            Paths of the merged documents written
        """
        pool_dir = Path(pool_dir)
        merged: List[Path] = []
        for subject, sources in self.collect_pool(pool_dir).items():
            output_path = pool_dir / merged_filename(self.profile.merged_stem, subject)
            self.logger.info(f"Starting PDF combination for {subject}: {len(sources)} files")
            try:
                self.combine(sources, output_path)
            except MergeError as e:
                self.logger.error(f"Error combining PDFs for {subject}: {e}")
                continue
            self.logger.info(f"Combined PDF saved as: {output_path.name}")
            self._remove_sources(sources)
            merged.append(output_path)
        return merged

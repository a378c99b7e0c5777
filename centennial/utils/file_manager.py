"""
Archive Layout

This module owns the on-disk contract of the archive: one ``YYYY-MM-DD``
directory per edition holding ``page_NN.pdf`` files until they are merged,
an ``images/`` subdirectory of ``page_NN.png`` renders, and the merged
``<Name>_YYYY-MM-DD_Complete.pdf``. Anything that reads the archive (the
file server, the viewer pages, the index below) relies only on these names.
"""

import os
import re
import html
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.models import SubjectDate

PathLike = Union[str, Path]

EDITION_DIR_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
PAGE_FILE_PATTERN = re.compile(r'^page_(\d+)\.pdf$')
PAGE_IMAGE_PATTERN = re.compile(r'^page_(\d+)\.png$')
IMAGES_DIRNAME = "images"


def page_filename(index: int) -> str:
    """Canonical per-page document name, zero-padded to two digits."""
    return f"page_{index:02d}.pdf"


def image_filename(index: int) -> str:
    return f"page_{index:02d}.png"


def merged_filename(stem: str, subject: SubjectDate) -> str:
    return f"{stem}_{subject.iso}_Complete.pdf"


def page_number(name: str, pattern: Optional[re.Pattern] = None) -> Optional[int]:
    """
    Numeric page index embedded in a filename.

    With no pattern the first run of digits is used, so ``page_02.pdf``,
    ``page_2.pdf`` and ``page_10.pdf`` give 2, 2 and 10.
    """
    base = os.path.basename(str(name))
    match = (pattern or re.compile(r'(\d+)')).search(base)
    return int(match.group(1)) if match else None


def sorted_pages(names: Sequence[PathLike], pattern: Optional[re.Pattern] = None) -> List:
    """Sort page files by numeric page index, never lexically. Unnumbered names go last."""
    def key(name):
        number = page_number(name, pattern)
        return (number is None, number if number is not None else 0, os.path.basename(str(name)))
    return sorted(names, key=key)


class ArchiveManager:
    """
    Creates and reads the dated archive layout.

    Edition directories are created eagerly (including ``images/``) before
    any network activity for that edition.
    """

    def __init__(self, base_output_dir: PathLike = "archive"):
        """
        Args:
            base_output_dir: Archive root holding one directory per edition
        """
        self.base_output_dir = Path(base_output_dir)
        self.logger = logging.getLogger(__name__)

    def ensure_root(self) -> Path:
        self.base_output_dir.mkdir(parents=True, exist_ok=True)
        return self.base_output_dir

    def edition_dir(self, subject: SubjectDate) -> Path:
        return self.base_output_dir / subject.iso

    def images_dir(self, edition_dir: PathLike) -> Path:
        return Path(edition_dir) / IMAGES_DIRNAME

    def create_edition_dirs(self, subject: SubjectDate) -> Path:
        """
        Create ``<root>/YYYY-MM-DD/images``.

        Returns:
            Path to the edition directory

        Raises:
            OSError: if the directories cannot be created
        """
        edition_dir = self.edition_dir(subject)
        self.images_dir(edition_dir).mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Working directory: {edition_dir.absolute()}")
        return edition_dir

    def page_path(self, edition_dir: PathLike, index: int) -> Path:
        return Path(edition_dir) / page_filename(index)

    def image_path(self, edition_dir: PathLike, index: int) -> Path:
        return self.images_dir(edition_dir) / image_filename(index)

    def list_page_files(self, edition_dir: PathLike) -> List[Path]:
        """All ``page_NN.pdf`` files in an edition directory, in page order."""
        directory = Path(edition_dir)
        if not directory.is_dir():
            return []
        files = [p for p in directory.iterdir() if p.is_file() and PAGE_FILE_PATTERN.match(p.name)]
        return sorted_pages(files, PAGE_FILE_PATTERN)

    def list_page_images(self, edition_dir: PathLike) -> List[Path]:
        images = self.images_dir(edition_dir)
        if not images.is_dir():
            return []
        files = [p for p in images.iterdir() if p.is_file() and PAGE_IMAGE_PATTERN.match(p.name)]
        return sorted_pages(files, PAGE_IMAGE_PATTERN)

    def has_images(self, edition_dir: PathLike) -> bool:
        return self.images_dir(edition_dir).is_dir()

    def list_editions(self) -> List[Path]:
        """Edition directories, most recent first."""
        if not self.base_output_dir.is_dir():
            return []
        dirs = [p for p in self.base_output_dir.iterdir()
                if p.is_dir() and EDITION_DIR_PATTERN.match(p.name)]
        return sorted(dirs, key=lambda p: p.name, reverse=True)

    def find_merged(self, edition_dir: PathLike) -> Optional[Path]:
        directory = Path(edition_dir)
        if not directory.is_dir():
            return None
        matches = sorted(directory.glob('*_Complete.pdf'))
        return matches[0] if matches else None

    def generate_index_file(self, output_path: PathLike = None) -> str:
        """
        Write a static ``index.html`` listing every edition, newest first.

        Returns:
            Path to the generated index file, or "" if it could not be written
        """
        if output_path is None:
            output_path = self.base_output_dir / "index.html"

        try:
            content = self._build_index_html()
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(content)
            self.logger.info(f"Generated index file: {output_path}")
            return str(output_path)
        except OSError as e:
            self.logger.error(f"Failed to generate index file: {e}")
            return ""

    def _build_index_html(self) -> str:
        template = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>100 Years Ago - Archive</title>
    <style>
        body {{ font-family: Georgia, serif; max-width: 960px; margin: 0 auto; padding: 20px; }}
        h1 {{ text-align: center; }}
        .edition {{ border-bottom: 1px solid #ddd; padding: 10px 0; }}
        .edition a {{ margin-right: 15px; color: #2c5aa0; text-decoration: none; }}
        .meta {{ color: #888; font-size: 0.85em; }}
    </style>
</head>
<body>
    <h1>100 Years Ago</h1>
    <p class="meta">{total} editions &middot; generated {generated}</p>
{entries}
</body>
</html>
"""
        entries = []
        for edition_dir in self.list_editions():
            links = []
            merged = self.find_merged(edition_dir)
            if merged is not None:
                rel = os.path.relpath(merged, self.base_output_dir)
                links.append(f'<a href="{html.escape(rel)}">PDF</a>')
            images = self.list_page_images(edition_dir)
            if images:
                rel = os.path.relpath(images[0], self.base_output_dir)
                links.append(f'<a href="{html.escape(rel)}">Images ({len(images)} pages)</a>')
            entries.append(
                f'    <div class="edition"><strong>{edition_dir.name}</strong> {" ".join(links)}</div>'
            )

        return template.format(
            total=len(entries),
            generated=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            entries="\n".join(entries),
        )

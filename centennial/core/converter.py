"""
Page Image Conversion

Rasterizes each ``page_NN.pdf`` of an edition into ``images/page_NN.png``
at a fixed density and pixel size using poppler (via pdf2image). Each file
is converted on its own; a failure is logged and the batch moves on.
"""

import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from pdf2image import convert_from_path
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image

from .config import RunConfig
from .errors import ConversionError
from ..utils.file_manager import ArchiveManager, image_filename, page_number, PAGE_FILE_PATTERN

# page_03.1.png -> page_03.png (page-suffixed output of single-page renders)
SUFFIXED_IMAGE_PATTERN = re.compile(r'^(page_\d+)\.\d+\.png$')


class ImageConverter:
    """Converts per-page PDFs into normalized PNG images."""

    def __init__(self, config: Optional[RunConfig] = None, archive: Optional[ArchiveManager] = None):
        self.config = config or RunConfig()
        self.archive = archive or ArchiveManager(self.config.output_dir)
        self.dpi = self.config.image_dpi
        self.size: Tuple[int, int] = tuple(self.config.image_size)
        self.logger = logging.getLogger(__name__)

    def convert_page(self, pdf_path: Path, output_path: Path) -> Path:
        """
        Render the first page of ``pdf_path`` to ``output_path``.

        Raises:
            ConversionError: if poppler is missing, the PDF is unreadable, or
                the image cannot be written
        """
        try:
            images = convert_from_path(
                str(pdf_path),
                dpi=self.dpi,
                first_page=1,
                last_page=1,
                size=self.size,
                fmt='png',
            )
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError, OSError, ValueError) as e:
            raise ConversionError(f"Could not rasterize {pdf_path.name}: {e}") from e

        if not images:
            raise ConversionError(f"No image produced for {pdf_path.name}")

        image = images[0]
        try:
            if image.size != self.size:
                image = image.resize(self.size, Image.LANCZOS)
            image.save(str(output_path), 'PNG', dpi=(self.dpi, self.dpi))
        except OSError as e:
            raise ConversionError(f"Could not write {output_path.name}: {e}") from e
        finally:
            for im in images:
                im.close()
        return output_path

    def convert_edition(self, edition_dir) -> List[Path]:
        """
        Convert every ``page_NN.pdf`` in an edition directory.

        Returns:
            Paths of the images written, in page order
        """
        edition_dir = Path(edition_dir)
        images_dir = self.archive.images_dir(edition_dir)
        images_dir.mkdir(parents=True, exist_ok=True)
        self.normalize_image_names(images_dir)

        pdf_files = self.archive.list_page_files(edition_dir)
        self.logger.info(f"Found {len(pdf_files)} PDFs to convert")

        written: List[Path] = []
        for pdf_path in pdf_files:
            index = page_number(pdf_path.name, PAGE_FILE_PATTERN)
            output_path = images_dir / image_filename(index)
            try:
                self.convert_page(pdf_path, output_path)
                written.append(output_path)
                self.logger.info(f"Successfully converted {pdf_path.name} to image")
            except ConversionError as e:
                self.logger.error(f"Error converting {pdf_path.name}: {e}")

        self.normalize_image_names(images_dir)
        return written

    def normalize_image_names(self, images_dir) -> int:
        """
        Rename page-suffixed renders (``page_NN.1.png``) to ``page_NN.png``.

        Returns:
            Number of files renamed
        """
        renamed = 0
        images_dir = Path(images_dir)
        if not images_dir.is_dir():
            return 0
        for path in sorted(images_dir.iterdir()):
            match = SUFFIXED_IMAGE_PATTERN.match(path.name)
            if not match:
                continue
            target = images_dir / f"{match.group(1)}.png"
            try:
                os.replace(path, target)
                renamed += 1
                self.logger.debug(f"Renamed {path.name} -> {target.name}")
            except OSError as e:
                self.logger.error(f"Could not rename {path.name}: {e}")
        return renamed

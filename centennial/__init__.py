"""
Centennial: 100-Years-Ago Newspaper Archiver

A utility for acquiring the daily newspaper edition published exactly one
hundred years ago from a paginated online viewer, then organizing the pages
into a dated archive with page images and a merged PDF per edition.
"""

__version__ = "1.0"
__author__ = "Centennial Project"
__description__ = "100-Years-Ago Newspaper Archiver"

"""GallerySync: cached, connectivity-aware browser backend for remote disk folders."""

__version__ = "0.1.0"

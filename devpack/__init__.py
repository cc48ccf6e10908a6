"""Pack, upload and serve development builds of Next.js packages."""

__version__ = "0.4.0"

"""attachgc: reference-counted garbage collection for content-addressed attachments."""

import importlib.metadata as importlib_metadata


def _detect_version() -> str:
    """Return installed package version, or a local fallback without metadata."""
    try:
        return importlib_metadata.version("attachgc")
    except importlib_metadata.PackageNotFoundError:
        return "0.0.0+unknown"


__version__ = _detect_version()

"""Azure Blob Storage backend.

Requires the ``azure`` extra: ``pip install attachgc[azure]``.
"""

from attachgc.plugins.azure.auth import AzureAuthConfig

__all__ = ["AzureAuthConfig"]

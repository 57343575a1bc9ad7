"""Azure DevOps downloader; importing this package registers its factory."""

from ..migration.downloader import register_downloader_factory
from .client import AzureDevOpsClient
from .downloader import AzureDevOpsDownloader, AzureDevOpsDownloaderFactory

register_downloader_factory(AzureDevOpsDownloaderFactory())

__all__ = [
    "AzureDevOpsClient",
    "AzureDevOpsDownloader",
    "AzureDevOpsDownloaderFactory",
]

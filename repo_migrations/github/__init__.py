"""GitHub downloader; importing this package registers its factory."""

from ..migration.downloader import register_downloader_factory
from .downloader import GitHubDownloader, GitHubDownloaderFactory, api_base_url

register_downloader_factory(GitHubDownloaderFactory())

__all__ = ["GitHubDownloader", "GitHubDownloaderFactory", "api_base_url"]

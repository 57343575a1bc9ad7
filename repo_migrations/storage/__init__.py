"""JSON storage of dumped repositories."""

from .dumper import DumpResult, RepositoryDumper

__all__ = ["DumpResult", "RepositoryDumper"]

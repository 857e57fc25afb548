from .resolve_source import SourceResolver

__all__ = ["SourceResolver"]

from .resolved_link_cache import CacheResolvedLinkRepository

__all__ = ["CacheResolvedLinkRepository"]

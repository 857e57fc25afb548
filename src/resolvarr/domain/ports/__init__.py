from .cache import CachePort
from .cloud_backend import CloudBackendPort
from .local_index import LocalIndexPort
from .resolved_link_repository import ResolvedLinkRepository

__all__ = [
    "CachePort",
    "CloudBackendPort",
    "LocalIndexPort",
    "ResolvedLinkRepository",
]

from .mount_index import MountLocalIndex

__all__ = ["MountLocalIndex"]

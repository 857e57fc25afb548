from .httpx_cloud_backend import HttpxCloudBackend

__all__ = ["HttpxCloudBackend"]

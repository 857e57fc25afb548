from .api_client import ResolvarrApiClient
from .bandwidth_tester import BandwidthTester, BandwidthTestResult
from .fallback import FallbackController
from .session import PlaybackSession
from .stutter import StutterDetector

__all__ = [
    "BandwidthTestResult",
    "BandwidthTester",
    "FallbackController",
    "PlaybackSession",
    "ResolvarrApiClient",
    "StutterDetector",
]

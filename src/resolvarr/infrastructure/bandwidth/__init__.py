from .monitor import BandwidthMonitor
from .test_stream import TestStreamGenerator

__all__ = ["BandwidthMonitor", "TestStreamGenerator"]

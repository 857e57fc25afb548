"""Per-playback session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from resolvarr.client.stutter import StutterDetector
from resolvarr.domain.entities.bandwidth import FallbackSession
from resolvarr.domain.entities.media import ContentRequest


@dataclass
class PlaybackSession:
    """What is playing, how fast it streams, and the fallback flag.

    The session is the only writer of its stutter detector and fallback
    flag.
    """

    request: ContentRequest
    stream_url: str
    file_name: str = ""
    current_bitrate_mbps: float | None = None
    detector: StutterDetector = field(default_factory=StutterDetector)
    fallback: FallbackSession = field(default_factory=FallbackSession)

    def on_buffering(self) -> bool:
        """Record a buffering event; True when a fallback is warranted."""
        return self.detector.record_buffering()

    def switch_source(
        self, stream_url: str, file_name: str, bitrate_mbps: float | None = None
    ) -> None:
        self.stream_url = stream_url
        self.file_name = file_name
        self.current_bitrate_mbps = bitrate_mbps

    def reset(self) -> None:
        """Forget buffering history and clear the fallback flag.

        Call on new content or an explicit quality change.
        """
        self.detector.reset()
        self.fallback.active = False

    def start(
        self,
        request: ContentRequest,
        stream_url: str,
        file_name: str = "",
        bitrate_mbps: float | None = None,
    ) -> None:
        """Begin playing new content in this session."""
        self.request = request
        self.switch_source(stream_url, file_name, bitrate_mbps)
        self.reset()

    def start_from_response(self, request: ContentRequest, data: Mapping[str, Any]) -> bool:
        """Begin playing the source in a ``/resolve`` answer or finished job.

        Returns False, leaving the session untouched, when *data* carries
        no ``streamUrl`` yet.
        """
        stream_url = data.get("streamUrl")
        if not stream_url:
            return False
        self.start(
            request,
            str(stream_url),
            str(data.get("fileName") or ""),
            data.get("estimatedBitrateMbps"),
        )
        return True

    @classmethod
    def from_response(
        cls, request: ContentRequest, data: Mapping[str, Any], **kwargs: Any
    ) -> PlaybackSession | None:
        """New session for a resolved source, or None while still resolving."""
        session = cls(request=request, stream_url="", **kwargs)
        return session if session.start_from_response(request, data) else None

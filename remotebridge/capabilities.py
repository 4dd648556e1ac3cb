"""Capability table: which remote interfaces the bridge imports and how.

Each importable capability maps to a :class:`CapabilitySpec` describing the
state properties it owns, the properties that must be seeded at wiring time
and the remote method that serves stream requests (if any).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable


class Capability(str, enum.Enum):
    """Capability interface tags the bridge knows about."""

    VIDEO_CAMERA = "VideoCamera"
    CAMERA = "Camera"
    RTC_SIGNALING_CHANNEL = "RTCSignalingChannel"
    BATTERY = "Battery"
    MOTION_SENSOR = "MotionSensor"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CapabilitySpec:
    """Typed record of what a capability exposes on a remote device."""
    capability: Capability
    properties: tuple[str, ...] = ()
    seeded: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    stream_method: str | None = None


# Allow-list order is the priority order the host sees.
ALLOWED_CAPABILITIES: tuple[Capability, ...] = (
    Capability.VIDEO_CAMERA,
    Capability.CAMERA,
    Capability.RTC_SIGNALING_CHANNEL,
    Capability.BATTERY,
    Capability.MOTION_SENSOR,
)

CAPABILITY_TABLE: dict[Capability, CapabilitySpec] = {
    Capability.VIDEO_CAMERA: CapabilitySpec(
        Capability.VIDEO_CAMERA,
        methods=("getVideoStream", "getVideoStreamOptions"),
        stream_method="get_video_stream",
    ),
    Capability.CAMERA: CapabilitySpec(
        Capability.CAMERA,
        methods=("takePicture", "getPictureOptions"),
    ),
    Capability.RTC_SIGNALING_CHANNEL: CapabilitySpec(
        Capability.RTC_SIGNALING_CHANNEL,
        methods=("startRTCSignalingSession",),
    ),
    Capability.BATTERY: CapabilitySpec(
        Capability.BATTERY,
        properties=("batteryLevel",),
        seeded=("batteryLevel",),
    ),
    Capability.MOTION_SENSOR: CapabilitySpec(
        Capability.MOTION_SENSOR,
        properties=("motionDetected",),
    ),
}


def spec_for(tag: str | Capability) -> CapabilitySpec | None:
    """Return the :class:`CapabilitySpec` for *tag*, or ``None`` if not importable."""
    try:
        return CAPABILITY_TABLE[Capability(tag)]
    except ValueError:
        return None


def intersect_allowed(interfaces: Iterable[str]) -> list[str]:
    """Return the allow-listed subset of *interfaces*, in allow-list order."""
    declared = {str(i) for i in interfaces}
    return [c.value for c in ALLOWED_CAPABILITIES if c.value in declared]

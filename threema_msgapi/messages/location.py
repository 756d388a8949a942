from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..exceptions import BadMessage
from .base import GroupScope, ThreemaMessage, decode_text
from .types import GroupId


def _fmt(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def format_location(latitude: float, longitude: float, accuracy: Optional[float],
                    poi_name: Optional[str], address: Optional[str]) -> bytes:
    coords = f"{_fmt(latitude)},{_fmt(longitude)}"
    if accuracy is not None:
        coords += f",{_fmt(accuracy)}"
    lines = [coords]
    if poi_name:
        lines.append(poi_name)
        lines.append((address or "").replace("\n", "\\n"))
    elif address:
        lines.append(address.replace("\n", "\\n"))
    return "\n".join(lines).encode("utf-8")


def parse_location(body: bytes) -> dict:
    # type byte + "0,0" is the shortest valid message
    if len(body) < 3:
        raise BadMessage(f"bad length ({len(body) + 1}) for location message")
    lines = decode_text(body, "location message").split("\n")
    if len(lines) > 3:
        raise BadMessage("location message has more than three lines")
    coords = lines[0].split(",")
    if len(coords) not in (2, 3):
        raise BadMessage("location message must start with lat,lng[,accuracy]")
    try:
        latitude = float(coords[0])
        longitude = float(coords[1])
        accuracy = float(coords[2]) if len(coords) == 3 else None
    except ValueError as e:
        raise BadMessage("location coordinates are not numbers") from e
    if abs(latitude) > 90.0 or abs(longitude) > 180.0:
        raise BadMessage("invalid coordinate values in location message")

    poi_name = address = None
    if len(lines) == 2:
        address = lines[1]
    elif len(lines) == 3:
        poi_name = lines[1] or None
        address = lines[2]
    if address is not None:
        address = address.replace("\\n", "\n") or None
    return {
        "latitude": latitude,
        "longitude": longitude,
        "accuracy": accuracy,
        "poi_name": poi_name,
        "address": address,
    }


@dataclass
class LocationMessage(ThreemaMessage):
    TYPE_CODE = 0x10

    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    poi_name: Optional[str] = None
    address: Optional[str] = None

    def body(self) -> bytes:
        return format_location(self.latitude, self.longitude, self.accuracy, self.poi_name, self.address)

    @classmethod
    def parse_body(cls, body, group):
        return cls(**parse_location(body))


@dataclass
class GroupLocationMessage(ThreemaMessage):
    TYPE_CODE = 0x42
    GROUP_SCOPE = GroupScope.CREATOR_AND_ID

    group: GroupId
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    poi_name: Optional[str] = None
    address: Optional[str] = None

    def body(self) -> bytes:
        return format_location(self.latitude, self.longitude, self.accuracy, self.poi_name, self.address)

    @classmethod
    def parse_body(cls, body, group):
        return cls(group, **parse_location(body))

"""
Remote corner-detection fallback.

Used when the local detector finds nothing: the encoded frame is posted to a
corner-detection service which replies with four named corners or a
not-found signal. Anything invalid is treated exactly like not-found.
"""

import json
import logging
import math
import re
from typing import Any, Dict, Optional

import requests

from common.errors import RemoteDetectionError
from common.geometry import Point, Quad

logger = logging.getLogger(__name__)

CORNER_NAMES = ('topLeft', 'topRight', 'bottomRight', 'bottomLeft')

_FENCE_START = re.compile(r'^```(?:json)?\s*\n?', re.IGNORECASE)
_FENCE_END = re.compile(r'\n?```\s*$')
_TRAILING_COMMA = re.compile(r',(\s*[}\]])')
_OUTER_OBJECT = re.compile(r'\{[\s\S]*\}')


def parse_reply(text: str) -> Dict[str, Any]:
    """
    Parse a JSON reply, tolerating markdown fences, trailing commas and
    chatter around the object.

    Raises:
        RemoteDetectionError: if no JSON object can be recovered
    """
    try:
        return _as_object(json.loads(text))
    except ValueError:
        pass

    cleaned = _FENCE_END.sub('', _FENCE_START.sub('', text.strip())).strip()
    cleaned = _TRAILING_COMMA.sub(r'\1', cleaned)
    try:
        return _as_object(json.loads(cleaned))
    except ValueError:
        pass

    match = _OUTER_OBJECT.search(cleaned)
    if match:
        try:
            return _as_object(json.loads(_TRAILING_COMMA.sub(r'\1', match.group(0))))
        except ValueError:
            pass

    raise RemoteDetectionError("Corner service reply is not a JSON object")


def _as_object(value) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError("reply is not an object")
    return value


def _is_number(value) -> bool:
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def validate_corners(reply: Dict[str, Any], width: int, height: int) -> Optional[Quad]:
    """
    Turn a service reply into a Quad.

    Args:
        reply: Parsed reply; {"corners": {...} | null} or {"found": false}
        width: Declared image width
        height: Declared image height

    Returns:
        Quad in TL, TR, BR, BL order, or None when the reply says not found or
        any coordinate is missing, non-numeric or outside 0..width / 0..height
    """
    if reply.get('found') is False:
        return None

    corners = reply.get('corners')
    if not isinstance(corners, dict):
        return None

    points = []
    for name in CORNER_NAMES:
        corner = corners.get(name)
        if not isinstance(corner, dict):
            logger.warning("Corner service reply is missing %s", name)
            return None

        x, y = corner.get('x'), corner.get('y')
        if not (_is_number(x) and _is_number(y)):
            logger.warning("Invalid corner coordinates for %s: %r", name, corner)
            return None
        if not (0 <= x <= width and 0 <= y <= height):
            logger.warning("Corner %s (%s, %s) is outside %dx%d", name, x, y, width, height)
            return None

        points.append(Point(float(x), float(y)))

    return Quad(*points)


class RemoteCornerDetector:
    """Client of the remote corner-detection service."""

    def __init__(self, url: str, timeout: float = 30.0, session=None):
        """
        Args:
            url: Endpoint accepting multipart image/width/height
            timeout: Request timeout in seconds
            session: requests.Session-like object; a new Session when omitted
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, image: bytes, width: int, height: int) -> Optional[Quad]:
        """
        Ask the service for the page corners.

        Raises:
            RemoteDetectionError: on network, HTTP or parse failure
        """
        try:
            response = self.session.post(
                self.url,
                files={'image': ('frame.jpg', image, 'image/jpeg')},
                data={'width': str(width), 'height': str(height)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise RemoteDetectionError(f"Corner service request failed: {e}") from e

        reply = parse_reply(response.text)
        return validate_corners(reply, width, height)

    def detect(self, image: bytes, width: int, height: int) -> Optional[Quad]:
        """Like fetch(), but every failure simply means not found."""
        try:
            return self.fetch(image, width, height)
        except RemoteDetectionError as e:
            logger.warning("Remote corner detection failed: %s", e)
            return None

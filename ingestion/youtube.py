"""YouTube URL parsing."""
import re
from urllib.parse import parse_qs, urlparse

# Catches share formats the structured parse below does not know about
YT_ID_RE = re.compile(
    r'(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^"&?/\s]{11})',
    re.IGNORECASE
)

VIDEO_ID_LENGTH = 11


class InvalidVideoUrl(ValueError):
    """Raised when a video id cannot be extracted from a URL."""
    user_facing = True


def parse_youtube_url(url: str) -> str:
    """Extract the 11-character video id from a watch/share/shorts/embed URL.

    Args:
        url: YouTube URL as typed by the user

    Returns:
        Video id

    Raises:
        InvalidVideoUrl: If the URL is empty or no id can be found
    """
    trimmed = (url or '').strip()
    if not trimmed:
        raise InvalidVideoUrl("Missing YouTube URL")

    parsed = urlparse(trimmed)
    host = (parsed.hostname or '').lower()
    path_parts = [p for p in parsed.path.split('/') if p]

    if host.endswith('youtu.be') and path_parts:
        if len(path_parts[0]) >= VIDEO_ID_LENGTH:
            return path_parts[0][:VIDEO_ID_LENGTH]

    if 'youtube.com' in host or 'youtube-nocookie.com' in host:
        v_param = parse_qs(parsed.query).get('v', [''])[0]
        if len(v_param) >= VIDEO_ID_LENGTH:
            return v_param[:VIDEO_ID_LENGTH]
        if len(path_parts) >= 2 and path_parts[0] in ('shorts', 'embed', 'live', 'v'):
            if len(path_parts[1]) >= VIDEO_ID_LENGTH:
                return path_parts[1][:VIDEO_ID_LENGTH]

    match = YT_ID_RE.search(trimmed)
    if not match:
        raise InvalidVideoUrl(f"Invalid YouTube URL: {trimmed}")
    return match.group(1)


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"

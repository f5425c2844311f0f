"""
Content shape classification and Upload-Post request building.

Upload-Post exposes one endpoint for videos and one for photos; text-only
posts go through the photo endpoint with no photos attached.
"""
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm", ".mpeg", ".m4v")

# Platform captions are cut to this length for video titles
MAX_VIDEO_TITLE = 280

VIDEO_ENDPOINT = "/upload"
PHOTO_ENDPOINT = "/upload_photos"


class ContentShape(Enum):
    """Mutually exclusive shapes a draft can be published as"""
    VIDEO = "video"
    PHOTO = "photo"
    TEXT = "text"


def is_video_url(url: str) -> bool:
    path = urlparse(url).path or url
    _, ext = os.path.splitext(path.lower())
    return ext in VIDEO_EXTENSIONS


def classify_media(media_urls: Optional[Sequence[str]]) -> ContentShape:
    """Video if any media is a video, photo for other media, text for none."""
    media = [url for url in (media_urls or []) if url]
    if not media:
        return ContentShape.TEXT
    if any(is_video_url(url) for url in media):
        return ContentShape.VIDEO
    return ContentShape.PHOTO


@dataclass
class SubmitRequest:
    """One Upload-Post submission, ready to be form-encoded."""
    endpoint: str
    shape: ContentShape
    user: str
    platforms: List[str]
    title: str
    description: str
    async_upload: bool = True
    scheduled_date: Optional[datetime] = None
    video: Optional[str] = None
    photos: List[str] = field(default_factory=list)
    link: Optional[str] = None

    def form_fields(self) -> List[Tuple[str, str]]:
        """Multipart fields; repeated keys for platform[] and photos[]."""
        fields = [("user", self.user)]
        fields.extend(("platform[]", platform) for platform in self.platforms)
        fields.append(("async_upload", "true" if self.async_upload else "false"))
        fields.append(("title", self.title))
        fields.append(("description", self.description))
        if self.scheduled_date:
            fields.append(("scheduled_date", self.scheduled_date.isoformat()))
        if self.video:
            fields.append(("video", self.video))
        fields.extend(("photos[]", photo) for photo in self.photos)
        if self.link:
            fields.append(("link", self.link))
        return fields


def build_submit_request(
    *,
    user: str,
    platforms: Sequence[str],
    text_content: Optional[str],
    media_urls: Optional[Sequence[str]],
    link_url: Optional[str],
    default_title: str,
    scheduled_date: Optional[datetime] = None,
) -> SubmitRequest:
    """Build the request for whichever shape the draft's media implies."""
    text = (text_content or "").strip()
    title = text or default_title
    media = [url for url in (media_urls or []) if url]
    shape = classify_media(media)

    request = SubmitRequest(
        endpoint=PHOTO_ENDPOINT,
        shape=shape,
        user=user,
        platforms=list(platforms),
        title=title,
        description=text,
        scheduled_date=scheduled_date,
    )

    if shape is ContentShape.VIDEO:
        request.endpoint = VIDEO_ENDPOINT
        request.video = next(url for url in media if is_video_url(url))
        request.title = title[:MAX_VIDEO_TITLE]
    elif shape is ContentShape.PHOTO:
        request.photos = media
    else:
        request.link = link_url or None

    return request

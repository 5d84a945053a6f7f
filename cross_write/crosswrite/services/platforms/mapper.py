"""Map draft -> MappedContent theo ràng buộc từng platform (title/body/tags/cover/canonical)."""
import re
from dataclasses import dataclass
from typing import Optional

from crosswrite.models import Draft
from crosswrite.services.platforms.base import (
    PLATFORM_CONFIGS,
    PLATFORM_DEVTO,
    PLATFORM_HASHNODE,
    MappedContent,
    sanitize_tags,
    truncate_text,
)

FRONT_MATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n?", re.DOTALL)


@dataclass
class MappingOptions:
    publish_as_draft: bool = False
    set_as_canonical: bool = False
    publication_id: Optional[str] = None
    canonical_url: Optional[str] = None


def strip_front_matter(content: str) -> str:
    return FRONT_MATTER_RE.sub("", content, count=1).strip()


def canonical_url_for(app_url: str, draft_id) -> str:
    return f"{app_url.rstrip('/')}/drafts/{draft_id}"


def map_content_for_platform(
    draft: Draft,
    platform: str,
    options: MappingOptions,
    app_url: str,
) -> MappedContent:
    config = PLATFORM_CONFIGS.get(platform)
    if not config:
        raise ValueError(f"Unsupported platform: {platform}")

    title = truncate_text(draft.title, config.max_title_length)
    body = draft.content or ""
    if platform in (PLATFORM_DEVTO, PLATFORM_HASHNODE):
        # devto tự dựng lại front matter lúc publish
        body = strip_front_matter(body)
    body = truncate_text(body, config.max_body_length)

    tags = sanitize_tags(draft.tags or [], config.max_tags) if config.max_tags > 0 else []

    if options.set_as_canonical:
        canonical = canonical_url_for(app_url, draft.id)
    else:
        canonical = options.canonical_url

    return MappedContent(
        title=title,
        body=body,
        tags=tags,
        cover_url=draft.thumbnail_url or None,
        canonical_url=canonical,
        publication_id=options.publication_id,
        publish_as_draft=options.publish_as_draft,
    )

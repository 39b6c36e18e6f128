"""Publishing: Notion page creation and the local Markdown fallback."""

from .fallback import save_markdown_fallback
from .notion import Block, NotionClient, PageContent, PageProperties, classify_notion_error
from .page_builder import (
    PublishOptions,
    ReflectionPageBuilder,
    build_markdown,
    build_page_content,
    generate_title,
)

__all__ = [
    "Block",
    "NotionClient",
    "PageContent",
    "PageProperties",
    "PublishOptions",
    "ReflectionPageBuilder",
    "build_markdown",
    "build_page_content",
    "classify_notion_error",
    "generate_title",
    "save_markdown_fallback",
]

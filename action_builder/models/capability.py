"""Site capability data structures produced by the recorder."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

UNCLASSIFIED_PAGE_TYPE = "unclassified"


class PageModule(str, Enum):
    HEADER = "header"
    FOOTER = "footer"
    SIDEBAR = "sidebar"
    NAVIBAR = "navibar"
    MAIN = "main"
    MODAL = "modal"
    BREADCRUMB = "breadcrumb"
    TAB = "tab"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: object) -> "PageModule":
        """Map any raw value onto the taxonomy, falling back to ``unknown``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        if value not in (None, ""):
            logger.warning("Unrecognised module %r, using 'unknown'", value)
        return cls.UNKNOWN


MODULE_NAMES = [m.value for m in PageModule]


class ElementSelector(BaseModel):
    type: str = "css"  # css, xpath, text, aria
    value: str


class ElementCapability(BaseModel):
    element_id: str
    description: str = ""
    element_type: str = ""  # button, input, link, dropdown, etc.
    allow_methods: list[str] = Field(default_factory=list)
    module: PageModule = PageModule.UNKNOWN
    selectors: list[ElementSelector] = Field(default_factory=list)
    text_content: str = ""
    updated_at: str = ""
    stale: bool = False

    @field_validator("module", mode="before")
    @classmethod
    def default_module(cls, v):
        return PageModule.coerce(v)

    @field_validator("allow_methods", mode="before")
    @classmethod
    def normalize_methods(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        seen: list[str] = []
        for method in v:
            m = str(method).strip().lower()
            if m and m not in seen:
                seen.append(m)
        return seen


class PageCapability(BaseModel):
    page_type: str
    url_pattern: Optional[str] = None
    description: str = ""
    url: str = ""
    elements: dict[str, ElementCapability] = Field(default_factory=dict)
    updated_at: str = ""


class SiteCapability(BaseModel):
    domain: str
    site_name: str = ""
    description: str = ""
    pages: dict[str, PageCapability] = Field(default_factory=dict)
    global_elements: dict[str, ElementCapability] = Field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""
    recording_count: int = 0

    def get_page(self, page_type: str) -> Optional[PageCapability]:
        return self.pages.get(page_type)

    def element_count(self) -> int:
        """Total elements across every page plus the global scope."""
        return len(self.global_elements) + sum(
            len(p.elements) for p in self.pages.values()
        )

    def module_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        elements = list(self.global_elements.values())
        for page in self.pages.values():
            elements.extend(page.elements.values())
        for element in elements:
            counts[element.module.value] = counts.get(element.module.value, 0) + 1
        return counts

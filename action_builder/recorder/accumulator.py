"""Capability accumulator — folds page-context and element registrations into a SiteCapability."""

from __future__ import annotations

import logging
import time
from typing import Optional

from action_builder.models.capability import (
    UNCLASSIFIED_PAGE_TYPE,
    ElementCapability,
    ElementSelector,
    PageCapability,
    PageModule,
    SiteCapability,
)
from action_builder.recorder.tools import RegisterElementCall, SetPageContextCall
from action_builder.url_utils import normalize_domain

logger = logging.getLogger(__name__)


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class CapabilityAccumulator:
    """Session-local, single-writer holder of the capability document.

    Events are applied in the order they arrive. Readers get deep copies
    from ``snapshot()``; the live document is never handed out.
    """

    def __init__(
        self,
        domain: str,
        site_name: str = "",
        description: str = "",
        known: Optional[SiteCapability] = None,
    ):
        self._site = SiteCapability(
            domain=normalize_domain(domain),
            site_name=site_name,
            description=description,
            created_at=_now(),
        )
        # Pages from earlier recordings: read for url patterns and element
        # counts only, never copied into this session's document.
        self._known_pages: dict[str, PageCapability] = (
            known.model_copy(deep=True).pages if known is not None else {}
        )
        self._active_page: Optional[str] = None
        self._default_url_pattern: Optional[str] = None

    @property
    def domain(self) -> str:
        return self._site.domain

    @property
    def active_page(self) -> Optional[str]:
        return self._active_page

    def set_default_url_pattern(self, pattern: Optional[str]) -> None:
        self._default_url_pattern = pattern

    def set_page_context(self, call: SetPageContextCall, url: str = "") -> PageCapability:
        """Create or select the page scope for subsequent registrations."""
        page = self._site.get_page(call.page_type)
        if page is None:
            known = self._known_pages.get(call.page_type)
            page = PageCapability(
                page_type=call.page_type,
                url_pattern=(
                    call.url_pattern
                    or (known.url_pattern if known else None)
                    or self._default_url_pattern
                ),
            )
            self._site.pages[call.page_type] = page
            if known:
                logger.info(
                    "Page context: %s (%d element(s) from earlier recordings)",
                    call.page_type, len(known.elements),
                )
            else:
                logger.info("New page context: %s", call.page_type)
        else:
            logger.info("Switched to existing page context: %s", call.page_type)
            if call.url_pattern:
                page.url_pattern = call.url_pattern

        if call.description:
            page.description = call.description
        if url:
            page.url = url
        page.updated_at = _now()
        self._active_page = call.page_type
        return page

    def known_element_count(self, page_type: str) -> int:
        """Distinct elements on a page, counting this session and earlier recordings."""
        ids: set[str] = set()
        known = self._known_pages.get(page_type)
        if known:
            ids.update(known.elements)
        page = self._site.get_page(page_type)
        if page:
            ids.update(page.elements)
        return len(ids)

    def active_url_pattern(self) -> Optional[str]:
        """URL pattern the active page scope is restricted to, if any."""
        if self._active_page is None:
            return self._default_url_pattern
        page = self._site.pages[self._active_page]
        return page.url_pattern or self._default_url_pattern

    def register_element(self, call: RegisterElementCall, url: str = "") -> tuple[str, ElementCapability]:
        """Upsert an element into its scope.

        Returns the scope name (a page type or ``"global"``) and the stored
        element. Without an active page context the element lands in the
        ``unclassified`` page.
        """
        now = _now()
        element = ElementCapability(
            element_id=call.element_id,
            description=call.description,
            element_type=call.element_type,
            allow_methods=call.allow_methods,
            module=PageModule.coerce(call.module),
            selectors=self._selectors(call),
            text_content=call.text_content or "",
            updated_at=now,
        )

        if call.is_global:
            existed = call.element_id in self._site.global_elements
            self._site.global_elements[call.element_id] = element
            scope = "global"
        else:
            if self._active_page is None:
                logger.warning(
                    "register_element(%s) before set_page_context; recording under '%s'",
                    call.element_id, UNCLASSIFIED_PAGE_TYPE,
                )
                self.set_page_context(
                    SetPageContextCall(
                        page_type=UNCLASSIFIED_PAGE_TYPE,
                        description="Elements registered without a page context",
                    ),
                    url=url,
                )
            page = self._site.pages[self._active_page]
            existed = call.element_id in page.elements
            page.elements[call.element_id] = element
            page.updated_at = now
            scope = page.page_type

        logger.debug(
            "%s element %s [%s] in %s",
            "Updated" if existed else "Registered",
            call.element_id, element.module.value, scope,
        )
        self._site.updated_at = now
        return scope, element

    @staticmethod
    def _selectors(call: RegisterElementCall) -> list[ElementSelector]:
        selectors = []
        if call.selector:
            selectors.append(ElementSelector(type="css", value=call.selector))
        if call.xpath:
            selectors.append(ElementSelector(type="xpath", value=call.xpath))
        if call.text_content and not selectors:
            selectors.append(ElementSelector(type="text", value=call.text_content))
        return selectors

    def snapshot(self) -> SiteCapability:
        return self._site.model_copy(deep=True)


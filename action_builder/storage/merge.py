"""Merging a session's capability snapshot into the stored document for its domain."""

from __future__ import annotations

import logging
import time
from typing import Optional

from action_builder.models.capability import ElementCapability, SiteCapability
from action_builder.models.config import MergePolicy

logger = logging.getLogger(__name__)


def _merge_scope(
    stored: dict[str, ElementCapability],
    incoming: dict[str, ElementCapability],
    policy: MergePolicy,
    scope_name: str,
) -> None:
    """Upsert ``incoming`` into ``stored`` and apply the stale policy in place.

    The stale policy only runs when the session registered at least one
    element in this scope, so a page that was merely visited keeps its data.
    """
    if not incoming:
        return

    missing = [eid for eid in stored if eid not in incoming]
    if missing:
        if policy == MergePolicy.REMOVE:
            for eid in missing:
                del stored[eid]
            logger.info("Removed %d stale element(s) from %s", len(missing), scope_name)
        elif policy == MergePolicy.MARK_STALE:
            for eid in missing:
                stored[eid].stale = True
            logger.info("Marked %d element(s) stale in %s", len(missing), scope_name)

    for eid, element in incoming.items():
        updated = element.model_copy(deep=True)
        updated.stale = False
        stored[eid] = updated


def merge_capabilities(
    existing: Optional[SiteCapability],
    incoming: SiteCapability,
    policy: MergePolicy = MergePolicy.RETAIN,
) -> SiteCapability:
    """Merge a session snapshot into the previously stored document.

    Page types are never dropped. Elements registered in the session
    overwrite stored ones with the same id; stored elements the session did
    not register again are handled according to ``policy``.
    """
    now = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    if existing is None:
        merged = incoming.model_copy(deep=True)
        merged.created_at = merged.created_at or now
        merged.updated_at = now
        merged.recording_count = 1
        return merged

    if existing.domain != incoming.domain:
        raise ValueError(
            f"Cannot merge capability for {incoming.domain} into {existing.domain}"
        )

    merged = existing.model_copy(deep=True)
    if incoming.site_name:
        merged.site_name = incoming.site_name
    if incoming.description:
        merged.description = incoming.description

    for page_type, page in incoming.pages.items():
        stored_page = merged.pages.get(page_type)
        if stored_page is None:
            merged.pages[page_type] = page.model_copy(deep=True)
            continue
        if page.description:
            stored_page.description = page.description
        if page.url:
            stored_page.url = page.url
        if page.url_pattern:
            stored_page.url_pattern = page.url_pattern
        stored_page.updated_at = page.updated_at or now
        _merge_scope(stored_page.elements, page.elements, policy, page_type)

    _merge_scope(merged.global_elements, incoming.global_elements, policy, "global")

    merged.updated_at = now
    merged.recording_count = existing.recording_count + 1
    logger.debug(
        "Merged capability for %s: %d pages, %d elements",
        merged.domain, len(merged.pages), merged.element_count(),
    )
    return merged

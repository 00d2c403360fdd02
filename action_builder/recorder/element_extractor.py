"""DOM element observation — lists interactive elements and the page module they sit in."""

from __future__ import annotations

import logging
import re
from typing import Optional

from playwright.async_api import Page

from action_builder.models.session import ObservedElement

logger = logging.getLogger(__name__)

_OBSERVE_SCRIPT = """() => {
    const interactiveTags = new Set([
        'a', 'button', 'input', 'select', 'textarea', 'details', 'summary'
    ]);
    const interactiveRoles = new Set([
        'button', 'link', 'textbox', 'checkbox', 'radio', 'combobox', 'searchbox',
        'listbox', 'menuitem', 'tab', 'switch', 'slider', 'option'
    ]);

    function cssSelector(el) {
        if (el.dataset && el.dataset.testid) return `[data-testid="${el.dataset.testid}"]`;
        if (el.id) return `#${CSS.escape(el.id)}`;
        const tag = el.tagName.toLowerCase();
        if (el.name && ['input', 'select', 'textarea'].includes(tag)) {
            return `${tag}[name="${el.name}"]`;
        }
        if (el.getAttribute('aria-label')) {
            return `${tag}[aria-label="${el.getAttribute('aria-label')}"]`;
        }
        let sel = tag;
        if (el.className && typeof el.className === 'string') {
            const cls = el.className.trim().split(/\\s+/).slice(0, 2).map(c => CSS.escape(c)).join('.');
            if (cls) sel += '.' + cls;
        }
        return sel;
    }

    function xpath(el) {
        const parts = [];
        let node = el;
        while (node && node.nodeType === 1 && node !== document.documentElement) {
            let idx = 1;
            let sib = node.previousElementSibling;
            while (sib) {
                if (sib.tagName === node.tagName) idx++;
                sib = sib.previousElementSibling;
            }
            parts.unshift(`${node.tagName.toLowerCase()}[${idx}]`);
            node = node.parentElement;
        }
        return '/html/' + parts.join('/');
    }

    function elementType(el) {
        const tag = el.tagName.toLowerCase();
        const role = el.getAttribute('role');
        if (tag === 'a') return 'link';
        if (tag === 'button' || (tag === 'input' && el.type === 'submit')) return 'button';
        if (tag === 'input') {
            if (el.type === 'checkbox') return 'checkbox';
            if (el.type === 'radio') return 'radio';
            return 'input';
        }
        if (tag === 'select' || role === 'combobox' || role === 'listbox') return 'dropdown';
        if (tag === 'textarea') return 'textarea';
        if (role) return role;
        return tag;
    }

    function moduleOf(el) {
        const checks = [
            ['modal', '[role="dialog"], [aria-modal="true"], dialog, .modal'],
            ['breadcrumb', '[aria-label*="breadcrumb" i], .breadcrumb, .breadcrumbs'],
            ['tab', '[role="tablist"], [role="tabpanel"]'],
            ['header', 'header, [role="banner"]'],
            ['footer', 'footer, [role="contentinfo"]'],
            ['sidebar', 'aside, [role="complementary"]'],
            ['navibar', 'nav, [role="navigation"]'],
            ['main', 'main, [role="main"]'],
        ];
        for (const [name, sel] of checks) {
            if (el.closest(sel)) return name;
        }
        return 'unknown';
    }

    const results = [];
    for (const el of document.querySelectorAll('*')) {
        const tag = el.tagName.toLowerCase();
        const role = el.getAttribute('role') || '';
        const isClickable = el.onclick || el.getAttribute('onclick');
        const isInteractive = interactiveTags.has(tag) ||
            interactiveRoles.has(role) ||
            isClickable ||
            el.getAttribute('tabindex') === '0';
        if (!isInteractive) continue;
        if (tag === 'input' && el.type === 'hidden') continue;
        if (el.offsetParent === null && !el.closest('details') &&
            getComputedStyle(el).position !== 'fixed') continue;

        const attrs = {};
        for (const attr of el.attributes) {
            if (['class', 'style'].includes(attr.name) || attr.name.startsWith('on')) continue;
            attrs[attr.name] = (attr.value || '').substring(0, 120);
        }
        const text = (el.innerText || el.value || el.getAttribute('aria-label') ||
            el.getAttribute('placeholder') || el.getAttribute('title') || '').trim();

        const selectors = [{type: 'css', value: cssSelector(el)}, {type: 'xpath', value: xpath(el)}];
        if (el.getAttribute('aria-label')) {
            selectors.push({type: 'aria', value: el.getAttribute('aria-label')});
        }
        if (text && text.length <= 60) selectors.push({type: 'text', value: text});

        results.push({
            tag: tag,
            element_type: elementType(el),
            text: text.replace(/\\s+/g, ' ').substring(0, 100),
            module: moduleOf(el),
            selectors: selectors,
            attributes: attrs,
        });
    }
    return results;
}"""

_STOPWORDS = {"the", "a", "an", "and", "or", "of", "in", "on", "to", "for", "all", "elements", "element"}


def _focus_terms(focus: Optional[str]) -> list[str]:
    if not focus:
        return []
    words = re.findall(r"[a-z0-9]+", focus.lower())
    return [w for w in words if w not in _STOPWORDS and len(w) > 1]


def _focus_score(element: ObservedElement, terms: list[str]) -> int:
    haystack = " ".join(
        [element.text, element.element_type, element.tag, element.module]
        + list(element.attributes.values())
    ).lower()
    return sum(1 for t in terms if t in haystack)


def rank_elements(
    elements: list[ObservedElement],
    module: Optional[str] = None,
    focus: Optional[str] = None,
    limit: int = 80,
) -> list[ObservedElement]:
    """Filter by module, put focus matches first (stable), and truncate."""
    if module:
        elements = [e for e in elements if e.module == module]
    terms = _focus_terms(focus)
    if terms:
        elements = sorted(elements, key=lambda e: -_focus_score(e, terms))
    return elements[:limit]


async def observe_elements(page: Page) -> list[ObservedElement]:
    """Extract visible interactive elements from the page.

    Raises on evaluation failure; the tool surface turns that into a
    failure result.
    """
    raw_elements = await page.evaluate(_OBSERVE_SCRIPT)
    elements = []
    for raw in raw_elements:
        elements.append(
            ObservedElement(
                tag=raw.get("tag", ""),
                element_type=raw.get("element_type", ""),
                text=raw.get("text", ""),
                module=raw.get("module", "unknown"),
                selectors=raw.get("selectors", []),
                attributes=raw.get("attributes", {}),
            )
        )
    logger.debug("Observed %d interactive elements", len(elements))
    return elements

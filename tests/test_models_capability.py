"""Tests for site capability data structures."""

import json

from action_builder.models.capability import (
    MODULE_NAMES,
    ElementCapability,
    PageCapability,
    PageModule,
    SiteCapability,
)


class TestPageModule:
    """Tests for the module taxonomy."""

    def test_taxonomy_is_fixed(self):
        assert MODULE_NAMES == [
            "header", "footer", "sidebar", "navibar", "main",
            "modal", "breadcrumb", "tab", "unknown",
        ]

    def test_coerce_known_value(self):
        assert PageModule.coerce("header") is PageModule.HEADER

    def test_coerce_is_case_insensitive(self):
        assert PageModule.coerce("  Footer ") is PageModule.FOOTER

    def test_coerce_none_and_garbage_to_unknown(self):
        assert PageModule.coerce(None) is PageModule.UNKNOWN
        assert PageModule.coerce("") is PageModule.UNKNOWN
        assert PageModule.coerce("toolbar") is PageModule.UNKNOWN


class TestElementCapability:
    """Tests for ElementCapability."""

    def test_minimal_element(self):
        element = ElementCapability(element_id="btn")
        assert element.module is PageModule.UNKNOWN
        assert element.allow_methods == []
        assert element.selectors == []
        assert element.stale is False

    def test_null_module_defaults_to_unknown(self):
        element = ElementCapability(element_id="btn", module=None)
        assert element.module is PageModule.UNKNOWN

    def test_allow_methods_normalized(self):
        element = ElementCapability(
            element_id="btn", allow_methods=["Click", "click", " type ", ""],
        )
        assert element.allow_methods == ["click", "type"]

    def test_allow_methods_from_string(self):
        element = ElementCapability(element_id="btn", allow_methods="click")
        assert element.allow_methods == ["click"]

    def test_module_serializes_as_string(self):
        element = ElementCapability(element_id="btn", module="header")
        data = element.model_dump(mode="json")
        assert data["module"] == "header"
        assert json.loads(json.dumps(data))["module"] == "header"


class TestSiteCapability:
    """Tests for SiteCapability helpers."""

    def test_empty_site(self):
        site = SiteCapability(domain="example.com")
        assert site.pages == {}
        assert site.global_elements == {}
        assert site.element_count() == 0
        assert site.get_page("missing") is None

    def test_element_count_includes_global(self, site_capability):
        site_capability.global_elements["nav_home"] = ElementCapability(
            element_id="nav_home", module="navibar",
        )
        assert site_capability.element_count() == 3

    def test_module_counts(self, site_capability):
        assert site_capability.module_counts() == {"header": 1, "main": 1}

    def test_roundtrip_via_json(self, site_capability):
        restored = SiteCapability.model_validate_json(site_capability.model_dump_json())
        assert restored == site_capability

    def test_page_scopes_are_independent(self):
        site = SiteCapability(domain="example.com")
        site.pages["a"] = PageCapability(page_type="a")
        site.pages["b"] = PageCapability(page_type="b")
        site.pages["a"].elements["x"] = ElementCapability(element_id="x")
        site.pages["b"].elements["x"] = ElementCapability(element_id="x", description="other")
        assert site.element_count() == 2
        assert site.pages["a"].elements["x"].description == ""

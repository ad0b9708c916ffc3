"""Tests for the service catalog — ordering, lookups, DB mirror."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


class TestCatalogShape:
    def test_ten_categories_in_display_order(self):
        from src.core.catalog import SERVICE_CATEGORIES
        assert [c.id for c in SERVICE_CATEGORIES] == [
            "ideation", "design", "branding", "packaging", "digital",
            "marketing", "compliance", "manufacturing", "finance", "growth",
        ]

    def test_service_ids_unique_across_catalog(self):
        from src.core.catalog import SERVICE_CATEGORIES, SERVICE_INDEX
        all_ids = [s.id for c in SERVICE_CATEGORIES for s in c.services]
        assert len(all_ids) == len(set(all_ids))
        assert len(SERVICE_INDEX) == len(all_ids)

    def test_catalog_is_immutable(self):
        from src.core.catalog import SERVICE_CATEGORIES
        cat = SERVICE_CATEGORIES[0]
        assert isinstance(cat.services, tuple)
        with pytest.raises(AttributeError):
            cat.services[0].title = "changed"
        assert cat.services[0].title == "Market Research & Consumer Insights"


class TestLookups:
    def test_service_title_known(self):
        from src.core.catalog import service_title
        assert service_title("seo") == "SEO & Listing Optimization"

    def test_service_title_unknown_returns_id(self):
        from src.core.catalog import service_title
        assert service_title("no-such-service") == "no-such-service"

    def test_category_of(self):
        from src.core.catalog import category_of
        assert category_of("pr").id == "marketing"
        assert category_of("nope") is None

    def test_get_service(self):
        from src.core.catalog import get_service
        svc = get_service("grants")
        assert svc.title == "Grants & Funding Advisory"
        assert get_service("nope") is None

    def test_option_label(self):
        from src.core.catalog import BUDGET_OPTIONS, TIMELINE_OPTIONS, option_label
        assert option_label(TIMELINE_OPTIONS, "flexible") == "Flexible"
        assert option_label(BUDGET_OPTIONS, "weird") == "weird"

    def test_catalog_as_dict(self):
        from src.core.catalog import catalog_as_dict
        data = catalog_as_dict()
        assert data[4]["id"] == "digital"
        assert {"id": "seo", "title": "SEO & Listing Optimization"} in data[4]["services"]


class TestCatalogMirror:
    def test_init_catalog_is_idempotent(self):
        from src.core.catalog import SERVICE_INDEX, init_catalog
        from src.core.db import get_db
        assert init_catalog() == len(SERVICE_INDEX)
        assert init_catalog() == len(SERVICE_INDEX)
        with get_db() as conn:
            n_svc = conn.execute("SELECT COUNT(*) FROM services").fetchone()[0]
            n_cat = conn.execute("SELECT COUNT(*) FROM service_categories").fetchone()[0]
        assert n_svc == len(SERVICE_INDEX)
        assert n_cat == 10

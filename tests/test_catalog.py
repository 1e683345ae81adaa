"""
Tests for the Stock Catalogue and category groups
"""
import pytest

from stockledger.schemas.enums import CategoryGroup, InventoryCategory, categories_in_group, category_group
from stockledger.services.stock.catalog import (
    FEED_CATALOG, FULL_CATALOG, MEDICATION_CATALOG, SUPPLEMENT_CATALOG, find_entry,
    get_catalog_by_group, search_catalog
)


class TestCategoryGroups:

    @pytest.mark.parametrize("category,group", [
        ("antibiotic", CategoryGroup.DRUG),
        ("vaccine", CategoryGroup.DRUG),
        ("hay-alfalfa", CategoryGroup.FEED),
        ("shell-corn", CategoryGroup.FEED),
        ("canola-meal", CategoryGroup.SUPPLEMENT),
        ("other", CategoryGroup.SUPPLEMENT),
    ])
    def test_category_group(self, category, group):
        assert category_group(category) == group

    def test_every_category_has_one_group(self):
        grouped = [c for g in CategoryGroup for c in categories_in_group(g)]

        assert sorted(c.value for c in grouped) == sorted(c.value for c in InventoryCategory)


class TestCatalog:
    """Test suite for catalogue search"""

    def test_catalog_groups(self):
        assert all(e.group == CategoryGroup.DRUG for e in MEDICATION_CATALOG)
        assert all(e.group == CategoryGroup.FEED for e in FEED_CATALOG)
        assert all(e.group == CategoryGroup.SUPPLEMENT for e in SUPPLEMENT_CATALOG)
        assert get_catalog_by_group("feed") == FEED_CATALOG

    def test_search_by_common_name(self):
        names = [e.name for e in search_catalog("pen g")]

        assert names == ["Penicillin (Procaine)"]

    def test_search_by_active_ingredient_case_insensitive(self):
        names = [e.name for e in search_catalog("TULATHROMYCIN")]

        assert names == ["Draxxin"]

    def test_search_within_group(self):
        results = search_catalog("corn", group="feed")

        assert {e.name for e in results} == {"Corn Silage", "Shell Corn"}

    def test_empty_query_returns_everything(self):
        assert len(search_catalog("")) == len(FULL_CATALOG)

    def test_find_entry(self):
        assert find_entry("  oats ").name == "Oats"
        assert find_entry("Moonbeams") is None

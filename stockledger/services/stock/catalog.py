"""
Stock Catalogue
Reference defaults for common drugs, feeds and supplements
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from stockledger.schemas.enums import CategoryGroup, InventoryCategory, InventoryUnit, category_group


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    category: InventoryCategory
    unit: InventoryUnit
    description: str
    default_reorder_point: Decimal
    default_reorder_quantity: Decimal
    default_cost_per_unit: Decimal
    withdrawal_period_days: Optional[int] = None
    concentration: Optional[str] = None
    active_ingredient: Optional[str] = None
    common_names: List[str] = field(default_factory=list)

    @property
    def group(self) -> CategoryGroup:
        return category_group(self.category)

    def matches(self, query: str) -> bool:
        haystack = [self.name, self.description, self.active_ingredient or ""] + list(self.common_names)
        return any(query in text.lower() for text in haystack)


def _entry(name, category, unit, description, reorder_point, reorder_qty, cost,
           withdrawal=None, concentration=None, active_ingredient=None, common_names=()):
    return CatalogEntry(
        name=name,
        category=InventoryCategory(category),
        unit=InventoryUnit(unit),
        description=description,
        default_reorder_point=Decimal(str(reorder_point)),
        default_reorder_quantity=Decimal(str(reorder_qty)),
        default_cost_per_unit=Decimal(str(cost)),
        withdrawal_period_days=withdrawal,
        concentration=concentration,
        active_ingredient=active_ingredient,
        common_names=list(common_names),
    )


MEDICATION_CATALOG = [
    # Antibiotics
    _entry("Penicillin (Procaine)", "antibiotic", "ml", "Procaine penicillin G for bacterial infections",
           50, 200, "0.15", 10, "300,000 IU/ml", "Procaine Penicillin G", ["Penicillin", "Pen G"]),
    _entry("LA-200 (Oxytetracycline)", "antibiotic", "ml", "Long-acting oxytetracycline",
           100, 500, "0.30", 28, "200 mg/ml", "Oxytetracycline", ["LA-200", "Oxy", "Liquamycin"]),
    _entry("Excenel RTU", "antibiotic", "ml", "Ceftiofur crystalline free acid",
           50, 200, "1.50", 13, "200 mg/ml", "Ceftiofur", ["Excenel", "Ceftiofur"]),
    _entry("Draxxin", "antibiotic", "ml", "Tulathromycin for respiratory disease",
           50, 200, "2.00", 18, "100 mg/ml", "Tulathromycin", ["Draxxin", "Tulathromycin"]),
    # Anti-inflammatories
    _entry("Banamine (Flunixin)", "anti-inflammatory", "ml", "Flunixin meglumine for pain and fever",
           50, 200, "0.50", 4, "50 mg/ml", "Flunixin Meglumine", ["Banamine", "Flunixin"]),
    _entry("Dexamethasone", "anti-inflammatory", "ml", "Corticosteroid anti-inflammatory",
           20, 100, "0.25", 7, "2 mg/ml", "Dexamethasone", ["Dex", "Dexamethasone"]),
    # Antiparasitics
    _entry("Ivomec (Ivermectin)", "antiparasitic", "ml", "Ivermectin pour-on for parasites",
           100, 500, "0.40", 48, "5 mg/ml", "Ivermectin", ["Ivomec", "Ivermectin"]),
    _entry("Cydectin Pour-On", "antiparasitic", "ml", "Moxidectin for internal and external parasites",
           100, 500, "0.50", 14, "0.5%", "Moxidectin", ["Cydectin", "Moxidectin"]),
    _entry("SafeGuard (Fenbendazole)", "antiparasitic", "ml", "Fenbendazole oral drench for worms",
           50, 200, "0.30", 8, "10%", "Fenbendazole", ["SafeGuard", "Panacur", "Fenbendazole"]),
    # Vaccines
    _entry("Bovi-Shield Gold 5", "vaccine", "doses", "Modified-live virus vaccine for respiratory disease",
           50, 200, "2.50", 21, common_names=["Bovi-Shield", "IBR Vaccine"]),
    _entry("Vision 7 with SPUR", "vaccine", "doses", "Clostridial vaccine",
           50, 200, "2.00", 21, common_names=["Vision 7", "Clostridial"]),
    # Injectable vitamins
    _entry("Vitamin B Complex", "vitamin-injectable", "ml", "B-complex vitamin injection",
           50, 200, "0.20", 0, common_names=["B Complex", "Vitamin B"]),
    _entry("Vitamin AD&E", "vitamin-injectable", "ml", "Fat-soluble vitamin injection",
           50, 200, "0.30", 0, common_names=["ADE", "Vitamin ADE"]),
]

FEED_CATALOG = [
    _entry("Corn Silage", "corn-silage", "tons", "Fermented whole corn plant",
           10, 50, 45, common_names=["Corn Silage", "Silage"]),
    _entry("Haylage", "haylage", "tons", "Fermented hay",
           10, 50, 50, common_names=["Haylage", "Baleage"]),
    _entry("Alfalfa Hay", "hay-alfalfa", "bales", "High-protein legume hay",
           100, 500, 8, common_names=["Alfalfa", "Legume Hay"]),
    _entry("Grass Hay", "hay-grass", "bales", "Mixed grass hay",
           100, 500, 5, common_names=["Grass Hay", "Timothy", "Brome"]),
    _entry("Mixed Hay (Grass/Alfalfa)", "hay-mixed", "bales", "Grass and alfalfa mix",
           100, 500, "6.50", common_names=["Mixed Hay", "Grass/Alfalfa"]),
    _entry("Straw", "straw", "bales", "Wheat or oat straw for bedding/roughage",
           50, 200, 3, common_names=["Straw", "Bedding"]),
    _entry("Shell Corn", "shell-corn", "bushels", "Whole kernel corn",
           1000, 5000, "4.50", common_names=["Corn", "Shell Corn", "Shelled Corn"]),
    _entry("Barley", "barley", "bushels", "Barley grain",
           500, 2000, "5.00", common_names=["Barley"]),
    _entry("Oats", "oats", "bushels", "Oat grain",
           500, 2000, "4.00", common_names=["Oats"]),
    _entry("Grain Mix", "grain-mix", "lbs", "Commercial grain blend",
           1000, 5000, "0.25", common_names=["Grain Mix", "Commercial Feed"]),
]

SUPPLEMENT_CATALOG = [
    _entry("Protein Tub (32%)", "protein-supplement", "lbs", "32% protein supplement tub",
           200, 1000, "0.50", common_names=["Protein Tub", "Lick Tub"]),
    _entry("Mineral Mix", "mineral-supplement", "lbs", "Complete mineral supplement",
           200, 1000, "0.40", common_names=["Mineral", "Mineral Mix", "Trace Mineral"]),
    _entry("Vitamin Premix", "vitamin-supplement", "lbs", "Vitamin supplement premix",
           50, 200, "1.00", common_names=["Vitamin Premix", "Vitamins"]),
    _entry("Distillers Grains (DDG)", "distillers-grains", "lbs", "Dried distillers grains with solubles",
           1000, 5000, "0.12", common_names=["DDG", "DDGS", "Distillers"]),
    _entry("Wheat Middlings", "wheat-middlings", "lbs", "Wheat mill byproduct",
           1000, 5000, "0.10", common_names=["Wheat Midds", "Middlings"]),
    _entry("Canola Meal", "canola-meal", "lbs", "Canola seed meal protein supplement",
           500, 2000, "0.15", common_names=["Canola Meal", "Rapeseed Meal"]),
]

FULL_CATALOG = MEDICATION_CATALOG + FEED_CATALOG + SUPPLEMENT_CATALOG

_BY_GROUP = {
    CategoryGroup.DRUG: MEDICATION_CATALOG,
    CategoryGroup.FEED: FEED_CATALOG,
    CategoryGroup.SUPPLEMENT: SUPPLEMENT_CATALOG,
}


def get_catalog_by_group(group) -> List[CatalogEntry]:
    return list(_BY_GROUP[CategoryGroup(group)])


def search_catalog(query: str = "", group=None) -> List[CatalogEntry]:
    """Match name, description, common names or active ingredient, case-insensitively"""
    entries = FULL_CATALOG if group is None else _BY_GROUP[CategoryGroup(group)]
    query = (query or "").strip().lower()
    if not query:
        return list(entries)
    return [entry for entry in entries if entry.matches(query)]


def find_entry(name: str) -> Optional[CatalogEntry]:
    """Exact catalogue entry by name, ignoring case"""
    wanted = name.strip().lower()
    for entry in FULL_CATALOG:
        if entry.name.lower() == wanted:
            return entry
    return None

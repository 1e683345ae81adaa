"""
Ledger enumerations shared by models, services and API schemas
"""
from enum import Enum


class CategoryGroup(str, Enum):
    DRUG = "drug"
    FEED = "feed"
    SUPPLEMENT = "supplement"


class InventoryCategory(str, Enum):
    # Drugs
    ANTIBIOTIC = "antibiotic"
    ANTIPARASITIC = "antiparasitic"
    VACCINE = "vaccine"
    ANTI_INFLAMMATORY = "anti-inflammatory"
    HORMONE = "hormone"
    VITAMIN_INJECTABLE = "vitamin-injectable"
    DRUG_OTHER = "drug-other"
    # Feed
    CORN_SILAGE = "corn-silage"
    HAYLAGE = "haylage"
    HAY_ALFALFA = "hay-alfalfa"
    HAY_GRASS = "hay-grass"
    HAY_MIXED = "hay-mixed"
    STRAW = "straw"
    SHELL_CORN = "shell-corn"
    BARLEY = "barley"
    OATS = "oats"
    GRAIN_MIX = "grain-mix"
    # Supplements
    PROTEIN_SUPPLEMENT = "protein-supplement"
    MINERAL_SUPPLEMENT = "mineral-supplement"
    VITAMIN_SUPPLEMENT = "vitamin-supplement"
    DISTILLERS_GRAINS = "distillers-grains"
    WHEAT_MIDDLINGS = "wheat-middlings"
    CANOLA_MEAL = "canola-meal"
    OTHER = "other"


DRUG_CATEGORIES = frozenset({
    InventoryCategory.ANTIBIOTIC, InventoryCategory.ANTIPARASITIC, InventoryCategory.VACCINE,
    InventoryCategory.ANTI_INFLAMMATORY, InventoryCategory.HORMONE,
    InventoryCategory.VITAMIN_INJECTABLE, InventoryCategory.DRUG_OTHER,
})

FEED_CATEGORIES = frozenset({
    InventoryCategory.CORN_SILAGE, InventoryCategory.HAYLAGE, InventoryCategory.HAY_ALFALFA,
    InventoryCategory.HAY_GRASS, InventoryCategory.HAY_MIXED, InventoryCategory.STRAW,
    InventoryCategory.SHELL_CORN, InventoryCategory.BARLEY, InventoryCategory.OATS,
    InventoryCategory.GRAIN_MIX,
})


def category_group(category) -> CategoryGroup:
    """Map a category sub-kind to drug, feed or supplement"""
    category = InventoryCategory(category)
    if category in DRUG_CATEGORIES:
        return CategoryGroup.DRUG
    if category in FEED_CATEGORIES:
        return CategoryGroup.FEED
    return CategoryGroup.SUPPLEMENT


def categories_in_group(group) -> list:
    group = CategoryGroup(group)
    return [c for c in InventoryCategory if category_group(c) == group]


class InventoryUnit(str, Enum):
    CC = "cc"
    ML = "ml"
    LBS = "lbs"
    KG = "kg"
    TONS = "tons"
    BALES = "bales"
    BAGS = "bags"
    BUSHELS = "bushels"
    DOSES = "doses"


class TransactionKind(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    ADJUSTMENT = "adjustment"
    WASTE = "waste"
    RETURN = "return"
    TRANSFER = "transfer"


class AlertKind(str, Enum):
    LOW_STOCK = "low_stock"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class AllocationEventKind(str, Enum):
    FEEDING = "feeding"
    TREATMENT = "treatment"
    VACCINATION = "vaccination"
    BULK_TREATMENT = "bulk_treatment"


class JournalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"

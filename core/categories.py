# core/categories.py
"""
Fixed category taxonomy.

Every category has a proper-case display name and belongs to exactly one
cost group. Other components rely on the partition:
- spending limits may only target VARIABLE categories
- INCOME categories never attach to expense or transfer records
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class CostGroup(str, Enum):
    FIXED = "fixed-cost"
    VARIABLE = "variable-cost"
    INCOME = "income-only"


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    group: CostGroup
    definition: str
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    examples: Tuple[str, ...] = field(default_factory=tuple)


DEFAULT_CATEGORY = "Other"

# Restaurant and fast food chains: a merchant name always means Dining Out
MERCHANT_NAMES: Tuple[str, ...] = (
    "burger king", "mcdonalds", "mcdonald", "kfc", "subway", "dominos", "domino",
    "papa johns", "taco bell", "wendys", "chipotle", "panera", "olive garden",
    "outback", "applebees", "chilis", "red lobster", "ihop", "dennys", "waffle house",
    "dunkin", "dunkin donuts", "five guys", "shake shack", "in-n-out", "whataburger",
    "jack in the box", "arbys", "panda express", "pizza hut", "little caesars",
    "starbucks",
)


CATEGORIES: Tuple[CategoryDefinition, ...] = (
    # HOUSING
    CategoryDefinition(
        "Rent", CostGroup.FIXED,
        "Monthly rental payments to landlords or property management companies",
        ("rent", "rental", "lease", "landlord", "apartment", "housing payment", "flat", "miete"),
        ("rent", "monthly rent", "apartment rent", "housing payment", "flat rent"),
    ),
    CategoryDefinition(
        "Mortgage", CostGroup.FIXED,
        "Mortgage payments including principal and interest",
        ("mortgage", "home loan", "principal", "interest", "house payment"),
        ("mortgage", "home loan payment", "house payment"),
    ),
    # UTILITIES
    CategoryDefinition(
        "Electricity", CostGroup.FIXED,
        "Electricity and power bills",
        ("electricity", "electric", "power", "energy", "utility", "utilities", "strom"),
        ("electric bill", "power bill", "energy bill"),
    ),
    CategoryDefinition(
        "Water & Sewage", CostGroup.FIXED,
        "Water supply and sewage bills",
        ("water", "sewage", "sewer", "water bill"),
        ("water bill", "water and sewer"),
    ),
    CategoryDefinition(
        "Gas & Heating", CostGroup.FIXED,
        "Natural gas bills for heating, cooking and hot water",
        ("heating", "natural gas", "gas bill", "heat"),
        ("gas bill", "heating", "natural gas"),
    ),
    CategoryDefinition(
        "Internet & Phone", CostGroup.FIXED,
        "Internet, mobile phone and home phone service",
        ("internet", "phone", "mobile", "broadband", "wifi", "cellular", "data plan"),
        ("phone bill", "internet bill", "data plan"),
    ),
    # FOOD
    CategoryDefinition(
        "Groceries", CostGroup.VARIABLE,
        "Food and household items from supermarkets for home consumption",
        ("grocery", "groceries", "grocerries", "supermarket", "food store", "food", "lebensmittel"),
        ("groceries", "supermarket", "food shopping", "spent on food", "on food", "for food"),
    ),
    CategoryDefinition(
        "Dining Out", CostGroup.VARIABLE,
        "Restaurants, cafes, takeout, delivery and dining outside the home",
        ("restaurant", "restaurants", "cafe", "dining", "dining out", "takeout", "take out",
         "delivery", "food delivery", "pizza", "burger", "lunch", "dinner", "breakfast",
         "coffee", "fast food", "drive thru", "eating out"),
        ("restaurant", "takeout", "food delivery", "pizza", "lunch", "dinner", "coffee"),
    ),
    # TRANSPORTATION
    CategoryDefinition(
        "Gas & Fuel", CostGroup.VARIABLE,
        "Gasoline, diesel and other vehicle fuel",
        ("gas", "fuel", "gasoline", "diesel", "petrol", "filling station", "gas station"),
        ("fuel", "gasoline", "gas station"),
    ),
    CategoryDefinition(
        "Public Transportation", CostGroup.VARIABLE,
        "Buses, trains, subways and other transit fares",
        ("bus", "train", "metro", "transit", "public transport", "public transportation", "tram"),
        ("bus ticket", "train ticket", "metro", "transit ticket"),
    ),
    CategoryDefinition(
        "Rideshare & Taxi", CostGroup.VARIABLE,
        "Uber, Lyft, taxi and other ride-hailing",
        ("uber", "lyft", "taxi", "cab", "rideshare", "ride share"),
        ("uber", "taxi", "cab ride"),
    ),
    CategoryDefinition(
        "Parking & Tolls", CostGroup.VARIABLE,
        "Parking fees, tolls and vehicle-related fees",
        ("parking", "toll", "tolls", "parking fee", "garage"),
        ("parking", "toll", "parking fee"),
    ),
    # SUBSCRIPTIONS
    CategoryDefinition(
        "Streaming Services", CostGroup.VARIABLE,
        "Netflix, Spotify, Disney+ and other streaming subscriptions",
        ("netflix", "spotify", "disney", "streaming", "hulu", "amazon prime", "apple tv"),
        ("netflix", "spotify", "streaming service"),
    ),
    CategoryDefinition(
        "Software & Apps", CostGroup.VARIABLE,
        "Software, app subscriptions and digital services",
        ("software", "app", "apps", "saas", "cloud service", "subscription"),
        ("software subscription", "app subscription", "cloud service"),
    ),
    # SHOPPING
    CategoryDefinition(
        "Shopping", CostGroup.VARIABLE,
        "General shopping and retail purchases",
        ("shopping", "store", "retail", "purchase", "amazon"),
        ("shopping", "store purchase", "retail"),
    ),
    CategoryDefinition(
        "Clothing & Fashion", CostGroup.VARIABLE,
        "Clothing, shoes, accessories and fashion",
        ("clothing", "clothes", "shoes", "fashion", "apparel", "wardrobe", "jacket", "shirt"),
        ("clothes", "shoes", "fashion"),
    ),
    # ENTERTAINMENT
    CategoryDefinition(
        "Entertainment", CostGroup.VARIABLE,
        "Movies, concerts, events, games and hobbies",
        ("movie", "movies", "cinema", "concert", "event", "game", "games", "entertainment",
         "ticket", "hobby", "hobbies", "fishing"),
        ("movie", "concert", "event ticket"),
    ),
    # HEALTH
    CategoryDefinition(
        "Medical & Healthcare", CostGroup.FIXED,
        "Doctor visits, medication and medical expenses",
        ("doctor", "medical", "health", "pharmacy", "medicine", "hospital", "clinic", "dentist"),
        ("doctor", "pharmacy", "medicine"),
    ),
    CategoryDefinition(
        "Fitness & Gym", CostGroup.VARIABLE,
        "Gym memberships, fitness classes and sports",
        ("gym", "fitness", "workout", "exercise", "sports", "yoga", "pilates"),
        ("gym", "fitness", "yoga"),
    ),
    # PERSONAL CARE
    CategoryDefinition(
        "Personal Care", CostGroup.VARIABLE,
        "Haircuts, salon services, grooming and hygiene",
        ("haircut", "salon", "barber", "grooming", "hygiene", "personal care", "spa",
         "toiletries", "toilette", "cosmetics"),
        ("haircut", "salon", "barber", "personal care"),
    ),
    # EDUCATION
    CategoryDefinition(
        "Education", CostGroup.FIXED,
        "Tuition, courses, certifications and study materials",
        ("tuition", "course", "education", "certification", "learning", "school", "university"),
        ("tuition", "course", "school fee"),
    ),
    # LOANS, DEBTS & LEASING
    CategoryDefinition(
        "Loan Payments", CostGroup.FIXED,
        "Installments on personal or student loans",
        ("loan", "loans", "loan payment", "loan payments", "student loan"),
        ("loan payment",),
    ),
    CategoryDefinition(
        "Debts", CostGroup.FIXED,
        "Credit card balances and other debt repayments",
        ("debt", "debts", "credit card", "credit card payment"),
        ("credit card payment",),
    ),
    CategoryDefinition(
        "Leasing", CostGroup.FIXED,
        "Car, vehicle and equipment lease payments",
        ("leasing", "lease payment", "car lease", "vehicle lease", "equipment lease"),
        ("car lease",),
    ),
    # INCOME
    CategoryDefinition(
        "Salary", CostGroup.INCOME,
        "Regular salary and wage income from employment",
        ("salary", "wage", "wages", "paycheck", "income", "earned", "gehalt"),
        ("salary", "paycheck", "wage"),
    ),
    CategoryDefinition(
        "Freelance & Side Income", CostGroup.INCOME,
        "Freelance work, side gigs and additional income",
        ("freelance", "side income", "gig", "bonus", "commission", "side hustle"),
        ("freelance", "side income", "bonus"),
    ),
    # OTHER
    CategoryDefinition(
        DEFAULT_CATEGORY, CostGroup.VARIABLE,
        "Miscellaneous spending that doesn't fit other categories",
        ("misc", "miscellaneous"),
        (),
    ),
)


_BY_NAME: Dict[str, CategoryDefinition] = {c.name.lower(): c for c in CATEGORIES}


def get_category(name: Optional[str]) -> Optional[CategoryDefinition]:
    """Case-insensitive lookup by display name."""
    if not name:
        return None
    return _BY_NAME.get(name.strip().lower())


def names_in(group: CostGroup) -> FrozenSet[str]:
    return frozenset(c.name for c in CATEGORIES if c.group is group)


ALL_CATEGORY_NAMES: FrozenSet[str] = frozenset(c.name for c in CATEGORIES)
FIXED_COST: FrozenSet[str] = names_in(CostGroup.FIXED)
VARIABLE_COST: FrozenSet[str] = names_in(CostGroup.VARIABLE)
INCOME_ONLY: FrozenSet[str] = names_in(CostGroup.INCOME)


def is_income_only(name: str) -> bool:
    return name in INCOME_ONLY


def is_variable_cost(name: str) -> bool:
    return name in VARIABLE_COST

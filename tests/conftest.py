"""Shared fixtures: sample profiles, wines and a seeded in-memory cellar."""

import pytest

from cellarwise.constants import Confidence, ProfileOrigin
from cellarwise.schema import Bottle, StructuralProfile, WineRecord
from cellarwise.stores import InMemoryCellarStore

CURRENT_YEAR = 2024
ALGORITHM_VERSION = 3


@pytest.fixture
def current_year():
    return CURRENT_YEAR


@pytest.fixture
def make_profile():
    """Factory for AI profiles with sensible defaults."""
    def _make(body=3, tannin=3, acidity=3, oak=2, sweetness=0, confidence=Confidence.HIGH):
        return StructuralProfile(
            body=body,
            tannin=tannin,
            acidity=acidity,
            oak=oak,
            sweetness=sweetness,
            confidence=confidence,
            source=ProfileOrigin.AI,
        )
    return _make


@pytest.fixture
def nebbiolo_profile(make_profile):
    """High tannin/acidity/oak Barolo-style profile."""
    return make_profile(body=4, tannin=5, acidity=5, oak=4)


@pytest.fixture
def make_bottle():
    """Factory for lineup candidates."""
    def _make(bottle_id, wine_id=None, rating=4.0, quantity=1, profile=None, **kwargs):
        return Bottle(
            bottle_id=bottle_id,
            wine_id=wine_id or f"w-{bottle_id}",
            wine_name=kwargs.pop("wine_name", f"Wine {bottle_id}"),
            rating=rating,
            quantity=quantity,
            profile=profile,
            **kwargs,
        )
    return _make


SAMPLE_WINES = [
    ("Barolo Cannubi", 2015, "red", ["Nebbiolo"], "Barolo"),
    ("Morgon", 2021, "red", ["Gamay"], "Beaujolais"),
    ("Chablis 1er Cru", 2020, "white", ["Chardonnay"], "Burgundy"),
    ("Brut Reserve", 2023, "sparkling", ["Chardonnay", "Pinot Noir"], "Champagne"),
    ("Bandol Rose", 2023, "rose", ["Mourvedre"], "Provence"),
    ("Pauillac", 2010, "red", ["Cabernet Sauvignon", "Merlot"], "Bordeaux"),
    ("Rioja Reserva", 2016, "red", ["Tempranillo"], "Rioja"),
    ("Mosel Kabinett", 2019, "white", ["Riesling"], "Mosel"),
    ("Barossa Shiraz", 2018, "red", ["Shiraz"], "Barossa Valley"),
    ("Old Bottle", 1890, "red", ["Merlot"], ""),
    ("Mystery NV", None, "red", [], None),
    ("Willamette Pinot", 2019, "red", ["Pinot Noir"], "Willamette Valley"),
]


def wine_record(index, name, vintage, color, grapes, region):
    return WineRecord(
        wine_id=f"w{index:03d}",
        wine_name=name,
        vintage_year=vintage,
        color=color,
        grapes=grapes,
        region=region,
    )


@pytest.fixture
def seeded_store():
    """Store with twelve wine rows r001-r012 and one orphan row r013."""
    store = InMemoryCellarStore()
    for index, (name, vintage, color, grapes, region) in enumerate(SAMPLE_WINES, start=1):
        store.add_wine(f"r{index:03d}", wine_record(index, name, vintage, color, grapes, region))
    store.add_wine("r013", None)
    return store

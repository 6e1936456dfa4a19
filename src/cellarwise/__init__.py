"""Cellarwise - drinking readiness, food pairing and tasting lineups for a wine cellar."""

from cellarwise.backfill import BackfillOrchestrator
from cellarwise.constants import BackfillMode, Confidence, JobStatus, ReadinessStatus, WineColor
from cellarwise.heuristics import GrapeRule, HeuristicProfileEstimator, RegionRule
from cellarwise.lineup import LineupOrderer, target_bottle_count
from cellarwise.pairing import PairingScorer
from cellarwise.readiness import ReadinessCalculator
from cellarwise.schema import (
    BackfillJob,
    Bottle,
    FoodProfile,
    LineupSlot,
    ReadinessResult,
    StructuralProfile,
    WineRecord,
    WineRow,
)
from cellarwise.service import CellarEngine
from cellarwise.stores import InMemoryCellarStore

__version__ = "0.1.0"

__all__ = [
    'CellarEngine',
    'ReadinessCalculator',
    'HeuristicProfileEstimator',
    'GrapeRule',
    'RegionRule',
    'PairingScorer',
    'LineupOrderer',
    'target_bottle_count',
    'BackfillOrchestrator',
    'InMemoryCellarStore',
    'BackfillMode',
    'Confidence',
    'JobStatus',
    'ReadinessStatus',
    'WineColor',
    'BackfillJob',
    'Bottle',
    'FoodProfile',
    'LineupSlot',
    'ReadinessResult',
    'StructuralProfile',
    'WineRecord',
    'WineRow',
    '__version__',
]

from __future__ import annotations

from .aggregate import aggregate_matches
from .analysis import AnalysisResult, run_analysis
from .directory import PolicyDirectory, SnapshotDirectory
from .errors import DirectoryError, GPOScopeError, SnapshotError
from .links import decode_link_options, link_options_for, parse_gplink
from .models import (
    DirectoryContext,
    HierarchyOverlap,
    LinkedContainer,
    LinkState,
    MatchRecord,
    PolicyObject,
    SameScopeOverlap,
    ScopeKind,
    ScopeRecord,
    ScoreBreakdown,
)
from .overlap import analyze_overlaps
from .scope import resolve_scopes
from .scoring import score_baselines, top_candidates

__version__ = "0.1.0"

"""Reconciliation engine components."""

from .similarity import SimilarityBreakdown, SimilarityScorer
from .matching import AcceptedMatch, GreedySnapshotMatcher
from .bill_diff import BillDiffEngine
from .classifier import MatchClassifier, SnapshotReview
from .grouping import ObligationGrouper, ReconciliationValidator, build_posted_records
from .fatura_comparison import FaturaComparator
from .service import ImportPreview, ReconciliationRejected, ReconciliationService

__all__ = [
    "SimilarityBreakdown",
    "SimilarityScorer",
    "AcceptedMatch",
    "GreedySnapshotMatcher",
    "BillDiffEngine",
    "MatchClassifier",
    "SnapshotReview",
    "ObligationGrouper",
    "ReconciliationValidator",
    "build_posted_records",
    "FaturaComparator",
    "ImportPreview",
    "ReconciliationRejected",
    "ReconciliationService",
]

"""catrecon - Materials list reconciliation against a product catalog."""

from catrecon.catalog import CatalogLookupClient, StaticCatalog
from catrecon.config import ReconcileConfig
from catrecon.errors import CatalogLookupError, CatalogReconError, InvalidBatchError
from catrecon.keywords import keywords
from catrecon.normalize import normalize
from catrecon.reconciler import Reconciler, reconcile, reconcile_sync
from catrecon.resolver import Resolver
from catrecon.scoring import similarity
from catrecon.types import (
    Availability,
    BatchSummary,
    CandidateItem,
    CatalogCandidate,
    MatchResult,
    MatchStage,
    Position,
    ReconcileReport,
    StockStatus,
)

__all__ = [
    "Availability",
    "BatchSummary",
    "CandidateItem",
    "CatalogCandidate",
    "CatalogLookupClient",
    "CatalogLookupError",
    "CatalogReconError",
    "InvalidBatchError",
    "MatchResult",
    "MatchStage",
    "Position",
    "ReconcileConfig",
    "ReconcileReport",
    "Reconciler",
    "Resolver",
    "StaticCatalog",
    "StockStatus",
    "keywords",
    "normalize",
    "reconcile",
    "reconcile_sync",
    "similarity",
]

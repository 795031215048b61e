"""AgroLCA - impatti ambientali delle operazioni agronomiche per ettaro e per tonnellata."""

from .data_loader import load_cluster_assignments, load_operations_from_csv, normalize
from .domains import DOMAINS, DomainConfig, UnknownDomainError, get_domain
from .factors import FactorTable, load_factor_dataset
from .filters import FilterState, apply_filters
from .impacts import compute_impacts, total_from_map
from .metrics import (
    BurdenComparison,
    CategoryBurden,
    aggregate,
    aggregate_by,
    aggregate_nutrients,
    compare_aggregates,
    impacts_by_source,
    sort_categories,
    summarize_impacts,
)
from .models import (
    AggregateResult,
    Basis,
    EnrichedRecord,
    FactorEntry,
    OperationRecord,
    ScoreKind,
)
from .parsing import derive_farmer_id, parse_csv_text, parse_number
from .pipeline import (
    ComparisonView,
    DatasetLoadError,
    build_comparison,
    build_source_breakdown,
    build_view,
    load_workspace,
    load_workspace_sync,
)

__all__ = [
    "AggregateResult",
    "Basis",
    "BurdenComparison",
    "CategoryBurden",
    "ComparisonView",
    "DOMAINS",
    "DatasetLoadError",
    "DomainConfig",
    "EnrichedRecord",
    "FactorEntry",
    "FactorTable",
    "FilterState",
    "OperationRecord",
    "ScoreKind",
    "UnknownDomainError",
    "aggregate",
    "aggregate_by",
    "aggregate_nutrients",
    "apply_filters",
    "build_comparison",
    "build_source_breakdown",
    "build_view",
    "compare_aggregates",
    "compute_impacts",
    "derive_farmer_id",
    "get_domain",
    "impacts_by_source",
    "load_cluster_assignments",
    "load_factor_dataset",
    "load_operations_from_csv",
    "load_workspace",
    "load_workspace_sync",
    "normalize",
    "parse_csv_text",
    "parse_number",
    "sort_categories",
    "summarize_impacts",
    "total_from_map",
]

__version__ = "0.1.0"

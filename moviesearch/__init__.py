"""
Faceted movie search client core: refinement model, search sessions, facet ordering
and transports for a hosted or local faceted search backend.
"""

from .errors import ErrorKind, NetworkError, SearchError, ServiceError
from .faceting import FacetingModeConverter
from .models import (
	ActorRecord,
	FacetingMode,
	FacetRefinement,
	FacetValueCount,
	MovieRecord,
	NumericFilter,
	ResultKind,
	ResultPage,
)
from .ordering import ResultOrdering, order_facet_values
from .query import QueryState
from .refinements import FacetRefinementSet
from .session import SearchSession, Signal

__all__ = [
	"ActorRecord",
	"ErrorKind",
	"FacetingMode",
	"FacetingModeConverter",
	"FacetRefinement",
	"FacetRefinementSet",
	"FacetValueCount",
	"MovieRecord",
	"NetworkError",
	"NumericFilter",
	"QueryState",
	"ResultKind",
	"ResultOrdering",
	"ResultPage",
	"SearchError",
	"SearchSession",
	"ServiceError",
	"Signal",
	"order_facet_values",
]

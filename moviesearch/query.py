"""
Query state module.
Holds everything a search request is made of and renders it into the flat
parameter mapping understood by faceted search services.
"""

import json  # list-valued parameters travel as JSON arrays
from dataclasses import dataclass, field  # mutable query aggregate
from typing import Any, Dict, List, Optional, Tuple  # type hints
from urllib.parse import parse_qsl, urlencode  # "params" string encoding

from .models import FacetValueCount, NumericFilter, ResultPage
from .refinements import FacetRefinementSet


# Parameters whose values are lists and must be JSON-encoded on the wire
LIST_PARAMS = ("facets", "facetFilters", "numericFilters", "disjunctiveFacets", "attributesToHighlight", "attributesToRetrieve")
# Parameters that are read back as integers
INT_PARAMS = ("page", "hitsPerPage")


@dataclass
class QueryState:
	"""
	Mutable query aggregate owned by one search session.
	Use snapshot() before handing it to a transport so later edits do not leak into
	an in-flight request.
	"""
	query: str = ""  # free text typed by the user
	refinements: FacetRefinementSet = field(default_factory=FacetRefinementSet)  # facet filters
	numeric_filters: List[NumericFilter] = field(default_factory=list)  # range filters
	facets: List[str] = field(default_factory=list)  # facets to compute counts for
	attributes_to_highlight: Optional[List[str]] = None  # None means service default
	attributes_to_retrieve: Optional[List[str]] = None  # None means service default
	page: int = 0  # zero-based page to fetch
	hits_per_page: int = 20  # page size

	def snapshot(self) -> "QueryState":
		return QueryState(
			query=self.query,
			refinements=self.refinements.copy(),
			numeric_filters=list(self.numeric_filters),
			facets=list(self.facets),
			attributes_to_highlight=list(self.attributes_to_highlight) if self.attributes_to_highlight is not None else None,
			attributes_to_retrieve=list(self.attributes_to_retrieve) if self.attributes_to_retrieve is not None else None,
			page=self.page,
			hits_per_page=self.hits_per_page,
		)

	def with_page(self, page: int) -> "QueryState":
		state = self.snapshot()
		state.page = page
		return state

	def to_params(self) -> Dict[str, Any]:
		"""Flat parameter mapping for the main request."""
		params: Dict[str, Any] = {
			"query": self.query or "",
			"page": self.page,
			"hitsPerPage": self.hits_per_page,
		}
		# Disjunctive facets need counts too even when not requested explicitly
		facets = list(self.facets)
		for name in self.refinements.disjunctive_facets:
			if name not in facets:
				facets.append(name)
		if facets:
			params["facets"] = facets
		params.update(self.refinements.render())
		if not params["facetFilters"]:
			del params["facetFilters"]
		if not params["disjunctiveFacets"]:
			del params["disjunctiveFacets"]
		if self.numeric_filters:
			params["numericFilters"] = [f.render() for f in self.numeric_filters]
		if self.attributes_to_highlight is not None:
			params["attributesToHighlight"] = list(self.attributes_to_highlight)
		if self.attributes_to_retrieve is not None:
			params["attributesToRetrieve"] = list(self.attributes_to_retrieve)
		return params

	def disjunctive_count_params(self) -> List[Tuple[str, Dict[str, Any]]]:
		"""
		One extra count-only request per refined disjunctive facet, with that facet's
		own refinements removed, so users can see the counts of alternative values.
		"""
		requests = []
		for name in self.refinements.disjunctive_facets:
			if not self.refinements.refinements_for(name):
				continue
			params = {
				"query": self.query or "",
				"page": 0,
				"hitsPerPage": 0,
				"facets": [name],
				"attributesToRetrieve": [],
				"attributesToHighlight": [],
			}
			filters = self.refinements.render(exclude_facet=name)["facetFilters"]
			if filters:
				params["facetFilters"] = filters
			if self.numeric_filters:
				params["numericFilters"] = [f.render() for f in self.numeric_filters]
			requests.append((name, params))
		return requests


def encode_params(params: Dict[str, Any]) -> str:
	"""URL-encode a parameter mapping, JSON-encoding list values."""
	flat = {}
	for key, value in params.items():
		if isinstance(value, (list, tuple)):
			flat[key] = json.dumps(list(value))
		else:
			flat[key] = value
	return urlencode(flat)


def decode_params(encoded: str) -> Dict[str, Any]:
	"""Inverse of encode_params."""
	params: Dict[str, Any] = {}
	for key, value in parse_qsl(encoded, keep_blank_values=True):
		if key in LIST_PARAMS:
			params[key] = json.loads(value) if value else []
		elif key in INT_PARAMS:
			params[key] = int(value)
		else:
			params[key] = value
	return params


def _parse_facets(raw: Optional[Dict[str, Dict[str, int]]]) -> Dict[str, List[FacetValueCount]]:
	facets: Dict[str, List[FacetValueCount]] = {}
	for name, counts in (raw or {}).items():
		facets[name] = [FacetValueCount(value=str(v), count=int(c)) for v, c in counts.items()]
	return facets


def page_from_response(
	payload: Dict[str, Any],
	query: QueryState,
	disjunctive_payloads: Optional[Dict[str, Dict[str, Any]]] = None,
	origin: str = "remote",
) -> ResultPage:
	"""
	Turn a service response (plus the optional disjunctive count responses) into a ResultPage.
	Counts of a disjunctive facet come from its own count request. Its selected values are
	kept in the list with a zero count when the service did not return them.
	"""
	facet_counts = _parse_facets(payload.get("facets"))
	exhaustive = bool(payload.get("exhaustiveFacetsCount", True))
	for name, extra in (disjunctive_payloads or {}).items():
		counts = _parse_facets(extra.get("facets")).get(name, [])
		present = {c.value for c in counts}
		for value in query.refinements.values_for(name):
			if value not in present:
				counts.append(FacetValueCount(value=value, count=0))
		facet_counts[name] = counts
		exhaustive = exhaustive and bool(extra.get("exhaustiveFacetsCount", True))

	hits = list(payload.get("hits") or [])
	return ResultPage(
		hits=hits,
		page=int(payload.get("page", query.page)),
		total_count=int(payload.get("nbHits", len(hits))),
		processing_time_ms=int(payload.get("processingTimeMS", 0)),
		facet_counts=facet_counts,
		is_exhaustive=exhaustive,
		query=query,
		disjunctive_facets=query.refinements.disjunctive_facets,
		hits_per_page=int(payload.get("hitsPerPage", query.hits_per_page)),
		origin=origin,
	)

"""
Facet refinement set.
Tracks which facet values are selected and in which faceting mode each facet is,
and renders them into the facet filter part of a query.
"""

from typing import Callable, Dict, Iterable, List, Optional

from .models import FacetingMode, FacetRefinement


class FacetRefinementSet:
	"""
	Ordered set of selected facet values plus the faceting mode of each facet.

	A refinement is stored once, and its facet has exactly one mode, so switching a
	facet between conjunctive and disjunctive never duplicates a selection.
	Facets with no explicit mode are conjunctive. Unknown facet names are accepted.
	"""

	def __init__(
		self,
		refinements: Optional[Iterable[FacetRefinement]] = None,
		disjunctive_facets: Optional[Iterable[str]] = None,
	):
		# dict keeps insertion order and gives O(1) membership
		self._refinements: Dict[FacetRefinement, None] = {}
		self._disjunctive: set = set(disjunctive_facets or [])
		for refinement in refinements or []:
			self.add(refinement)

	def __len__(self) -> int:
		return len(self._refinements)

	def __iter__(self):
		return iter(list(self._refinements))

	def __contains__(self, refinement: FacetRefinement) -> bool:
		return self.has(refinement)

	def __eq__(self, other) -> bool:
		if not isinstance(other, FacetRefinementSet):
			return NotImplemented
		return list(self) == list(other) and self._disjunctive == other._disjunctive

	def __repr__(self) -> str:
		return f"FacetRefinementSet({list(self)!r}, disjunctive={sorted(self._disjunctive)!r})"

	def add(self, refinement: FacetRefinement) -> None:
		self._refinements.setdefault(refinement, None)

	def remove(self, refinement: FacetRefinement) -> None:
		self._refinements.pop(refinement, None)

	def toggle(self, refinement: FacetRefinement) -> bool:
		"""Add the refinement if absent, remove it if present. Returns the new membership."""
		if refinement in self._refinements:
			self.remove(refinement)
			return False
		self.add(refinement)
		return True

	def has(self, refinement: FacetRefinement) -> bool:
		return refinement in self._refinements

	def clear(self, facet_name: Optional[str] = None) -> None:
		if facet_name is None:
			self._refinements.clear()
			return
		for refinement in self.refinements_for(facet_name):
			self.remove(refinement)

	def refinements_for(
		self,
		facet_name: Optional[str] = None,
		predicate: Optional[Callable[[FacetRefinement], bool]] = None,
	) -> List[FacetRefinement]:
		"""Selected refinements, optionally restricted to one facet and/or a predicate."""
		return [
			r for r in self._refinements
			if (facet_name is None or r.name == facet_name) and (predicate is None or predicate(r))
		]

	def values_for(self, facet_name: str) -> List[str]:
		return [r.value for r in self.refinements_for(facet_name)]

	def set_mode(self, facet_name: str, mode: FacetingMode) -> None:
		if mode == FacetingMode.DISJUNCTIVE:
			self._disjunctive.add(facet_name)
		else:
			self._disjunctive.discard(facet_name)

	def mode_of(self, facet_name: str) -> FacetingMode:
		if facet_name in self._disjunctive:
			return FacetingMode.DISJUNCTIVE
		return FacetingMode.CONJUNCTIVE

	def is_disjunctive(self, facet_name: str) -> bool:
		return facet_name in self._disjunctive

	@property
	def disjunctive_facets(self) -> List[str]:
		return sorted(self._disjunctive)

	def copy(self) -> "FacetRefinementSet":
		return FacetRefinementSet(self._refinements, self._disjunctive)

	def render(self, exclude_facet: Optional[str] = None) -> dict:
		"""
		Build the facet filter fragment of a query.

		Conjunctive refinements each become one top-level filter (all ANDed).
		The refinements of a disjunctive facet are grouped into one nested list (ORed).
		Every disjunctive facet is listed under `disjunctiveFacets` so its counts can be
		computed without its own refinements. `exclude_facet` drops one facet entirely, which is
		how those per-facet count queries are built.
		"""
		filters: list = []
		groups: Dict[str, list] = {}
		for refinement in self._refinements:
			if refinement.name == exclude_facet:
				continue
			if refinement.name in self._disjunctive:
				group = groups.get(refinement.name)
				if group is None:
					# the group takes the position of its first refinement
					group = groups[refinement.name] = []
					filters.append(group)
				group.append(refinement.to_filter())
			else:
				filters.append(refinement.to_filter())
		return {"facetFilters": filters, "disjunctiveFacets": self.disjunctive_facets}

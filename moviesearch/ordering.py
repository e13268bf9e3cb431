"""
Ordering module.
Sorts the value counts of a facet for display in a filter list.
"""

from typing import Callable, Iterable, List, Tuple

from .models import FacetingMode, FacetValueCount, ResultPage


class ResultOrdering:
	"""
	Orders facet values by:
	- selection: refined values first, in conjunctive mode only (in disjunctive mode
	  refined values stay where their count puts them)
	- count, descending
	- value, ascending
	The order must be recomputed on every result update since counts and selection change.
	"""

	def sort_key(self, value: FacetValueCount, refined: bool, mode: FacetingMode) -> Tuple[int, int, str]:
		selection_rank = 0 if (refined and mode == FacetingMode.CONJUNCTIVE) else 1
		return (selection_rank, -value.count, value.value)

	def order(
		self,
		values: Iterable[FacetValueCount],
		is_refined: Callable[[str], bool],
		mode: FacetingMode = FacetingMode.CONJUNCTIVE,
	) -> List[FacetValueCount]:
		return sorted(values, key=lambda v: self.sort_key(v, bool(is_refined(v.value)), mode))

	def order_from_page(self, page: ResultPage, facet_name: str) -> List[FacetValueCount]:
		"""Order one facet of a page using the selection and mode of the query that produced it."""
		refined = set(page.query.refinements.values_for(facet_name)) if page.query is not None else set()
		mode = FacetingMode.DISJUNCTIVE if facet_name in page.disjunctive_facets else FacetingMode.CONJUNCTIVE
		return self.order(page.facets(facet_name), lambda value: value in refined, mode)


def order_facet_values(
	values: Iterable[FacetValueCount],
	is_refined: Callable[[str], bool],
	mode: FacetingMode = FacetingMode.CONJUNCTIVE,
) -> List[FacetValueCount]:
	return ResultOrdering().order(values, is_refined, mode)

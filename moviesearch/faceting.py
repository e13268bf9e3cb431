"""
Faceting mode conversion.
Switches a facet between conjunctive (AND) and disjunctive (OR) faceting while keeping
exactly the same values selected.
"""

from concurrent.futures import Future
from typing import Optional

from loguru import logger

from .models import FacetingMode
from .refinements import FacetRefinementSet


class FacetingModeConverter:

	def convert_set(self, refinements: FacetRefinementSet, facet_name: str, mode: FacetingMode) -> FacetRefinementSet:
		"""Return a new set where facet_name is in `mode` and carries the same selected values."""
		converted = refinements.copy()
		selected = converted.refinements_for(facet_name)
		for refinement in selected:
			converted.remove(refinement)
		converted.set_mode(facet_name, mode)
		for refinement in selected:
			converted.add(refinement)
		return converted

	def convert(self, session, facet_name: str, mode: FacetingMode, search: bool = True) -> Optional[Future]:
		"""
		Convert the facet inside a session's query and refresh the results.
		The new set is built aside and swapped in by the session in one step.
		"""
		converted = session.update_refinements(lambda current: self.convert_set(current, facet_name, mode))
		logger.debug(
			f"[Faceting] '{facet_name}' is now {mode.value} with {len(converted.refinements_for(facet_name))} selected value(s)"
		)
		if not search:
			return None
		return session.search()

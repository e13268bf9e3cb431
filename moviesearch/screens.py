"""
Screen controllers.
Presentation-independent state behind the two movie screens: a plain movie list with
infinite scroll, and a browsing screen with actor results, a genre facet list, a year
range and a minimum rating. Each list has its own state object.
"""

from concurrent.futures import Executor
from datetime import date
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from loguru import logger

from .config import PREFETCH_DISTANCE, SearchSettings
from .errors import SearchError
from .faceting import FacetingModeConverter
from .models import ActorRecord, FacetingMode, FacetRefinement, FacetValueCount, MovieRecord, NumericFilter, ResultPage
from .ordering import ResultOrdering
from .query import QueryState
from .session import SearchSession


GENRE_FACET = "genre"
SEARCH_ERROR_TEXT = "Search failed"
MIN_YEAR = 1900

R = TypeVar("R")


class HitListState(Generic[R]):
	"""
	Rows of one paginated hit list backed by a session.
	Reading a row close to the end of the loaded hits asks the session for the next page.
	"""

	def __init__(self, session: SearchSession, to_record: Callable[[dict], R], prefetch_distance: int = PREFETCH_DISTANCE):
		self.session = session
		self.to_record = to_record
		self.prefetch_distance = prefetch_distance
		self.scroll_to_top = False  # set when a page 0 replaced the rows
		self.origin_is_local = False

	def __len__(self) -> int:
		return len(self.session.hits)

	def should_prefetch(self, index: int) -> bool:
		return index + self.prefetch_distance >= len(self)

	def row(self, index: int) -> R:
		hits = self.session.hits
		if index + self.prefetch_distance >= len(hits):
			self.session.load_more()
		return self.to_record(hits[index])

	def records(self) -> List[R]:
		return [self.to_record(hit) for hit in self.session.hits]

	def update(self, page: ResultPage) -> None:
		if page.page == 0:
			self.scroll_to_top = True
		self.origin_is_local = page.origin == "local"


class FacetListState:
	"""Ordered values of one facet, with the checked state taken from the query that produced them."""

	def __init__(self, facet_name: str, ordering: Optional[ResultOrdering] = None):
		self.facet_name = facet_name
		self.ordering = ordering or ResultOrdering()
		self.values: List[FacetValueCount] = []
		self.footer_visible = False  # "counts are approximate" footer
		self._selected: set = set()

	def __len__(self) -> int:
		return len(self.values)

	def update(self, page: ResultPage) -> None:
		self.values = self.ordering.order_from_page(page, self.facet_name)
		self._selected = set(page.query.refinements.values_for(self.facet_name)) if page.query is not None else set()
		self.footer_visible = not page.is_exhaustive

	def row(self, index: int) -> Tuple[FacetValueCount, bool]:
		value = self.values[index]
		return value, value.value in self._selected

	def is_checked(self, value: str) -> bool:
		return value in self._selected


class MovieListScreen:
	"""Search-as-you-type movie list with infinite scroll."""

	def __init__(self, transport, settings: Optional[SearchSettings] = None, executor: Optional[Executor] = None):
		settings = settings or SearchSettings()
		query = QueryState(
			hits_per_page=settings.hits_per_page,
			attributes_to_retrieve=["title", "image", "rating", "year"],
			attributes_to_highlight=["title"],
		)
		self.session = SearchSession(transport, query, executor=executor, name="movies")
		self.movies: HitListState[MovieRecord] = HitListState(self.session, MovieRecord.from_hit)
		self.network_busy = False
		self.session.on_results.connect(self.movies.update)
		self.session.on_search_started.connect(lambda: self._set_busy(True))
		self.session.on_search_stopped.connect(lambda: self._set_busy(False))

	def _set_busy(self, busy: bool) -> None:
		self.network_busy = busy

	def set_search_text(self, text: Optional[str]):
		self.session.set_query_text(text)
		return self.session.search()

	def close(self) -> None:
		self.session.close()


class MoviesScreen:
	"""
	Browsing screen: movie grid, actor list, genre facet list, year range and rating.
	Free text drives both the movie and the actor searches.
	"""

	def __init__(
		self,
		movie_transport,
		actor_transport,
		settings: Optional[SearchSettings] = None,
		executor: Optional[Executor] = None,
		year_range: Optional[Tuple[int, int]] = None,
	):
		settings = settings or SearchSettings()
		self.movie_session = SearchSession(
			movie_transport,
			QueryState(facets=[GENRE_FACET], attributes_to_highlight=["title"], hits_per_page=settings.grid_hits_per_page),
			executor=executor,
			name="movies",
		)
		self.actor_session = SearchSession(
			actor_transport,
			QueryState(attributes_to_highlight=["name"], hits_per_page=settings.actor_hits_per_page),
			executor=executor,
			name="actors",
		)
		self.movies: HitListState[MovieRecord] = HitListState(self.movie_session, MovieRecord.from_hit)
		self.actors: HitListState[ActorRecord] = HitListState(self.actor_session, ActorRecord.from_hit)
		self.genres = FacetListState(GENRE_FACET)
		self.converter = FacetingModeConverter()

		self.year_range = year_range or (MIN_YEAR, date.today().year)
		self.min_rating = 0
		self.genre_disjunctive = False

		self.movie_count_label = "MOVIES"
		self.search_time_label: Optional[str] = None
		self.activity_indicator = False

		self.movie_session.on_results.connect(self._handle_movie_results)
		self.movie_session.on_error.connect(self._handle_movie_error)
		self.movie_session.on_search_started.connect(self._start_activity)
		self.movie_session.on_search_stopped.connect(self._stop_activity)
		self.actor_session.on_results.connect(self.actors.update)

	# -- actions ------------------------------------------------------------

	def numeric_filters(self) -> List[NumericFilter]:
		low, high = self.year_range
		return [
			NumericFilter("year", ">=", int(low)),
			NumericFilter("year", "<=", int(high)),
			NumericFilter("rating", ">=", self.min_rating),
		]

	def search(self) -> None:
		self.actor_session.search()
		self.movie_session.set_numeric_filters(self.numeric_filters())
		self.movie_session.search()

	def set_search_text(self, text: Optional[str]) -> None:
		self.actor_session.set_query_text(text)
		self.movie_session.set_query_text(text)
		self.search()

	def set_year_range(self, low: int, high: int) -> None:
		if low > high:
			low, high = high, low
		self.year_range = (low, high)
		self.search()

	def set_min_rating(self, rating: int) -> None:
		self.min_rating = rating
		self.search()

	def toggle_genre(self, value: str) -> bool:
		selected = self.movie_session.toggle_refinement(FacetRefinement(GENRE_FACET, value))
		self.movie_session.search()
		return selected

	def select_genre_row(self, index: int) -> bool:
		return self.toggle_genre(self.genres.values[index].value)

	def set_genre_disjunctive(self, disjunctive: bool) -> None:
		self.genre_disjunctive = disjunctive
		mode = FacetingMode.DISJUNCTIVE if disjunctive else FacetingMode.CONJUNCTIVE
		self.converter.convert(self.movie_session, GENRE_FACET, mode, search=False)
		self.search()

	# -- session events -----------------------------------------------------

	def _handle_movie_results(self, page: ResultPage) -> None:
		self.genres.update(page)
		self.movies.update(page)
		self.movie_count_label = f"{page.total_count:,} MOVIES"
		self.search_time_label = f"Found in {page.processing_time_ms} ms"
		logger.debug(f"[Screen] {self.movie_count_label} (page {page.page}, {len(self.movies)} loaded)")

	def _handle_movie_error(self, error: SearchError) -> None:
		self.search_time_label = SEARCH_ERROR_TEXT

	def _start_activity(self) -> None:
		self.activity_indicator = True

	def _stop_activity(self) -> None:
		# only once no request of the movie session is in flight
		self.activity_indicator = False

	def close(self) -> None:
		self.movie_session.close()
		self.actor_session.close()

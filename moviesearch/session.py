"""
Search session module.
Owns one logical search stream (query text + filters): issues requests, counts the
ones in flight, merges paged results and decides when more pages can be loaded.
"""

import threading  # serialize mutations from UI events and completion callbacks
from concurrent.futures import Executor, Future, ThreadPoolExecutor  # asynchronous requests
from typing import Callable, List, Optional, Set, Tuple  # type hints

from loguru import logger  # console logging

from .errors import ErrorKind, SearchError
from .faceting import FacetingModeConverter
from .models import FacetRefinement, FacetingMode, Hit, NumericFilter, ResultPage
from .query import QueryState
from .refinements import FacetRefinementSet


class Signal:
	"""A typed list of subscribers. Emitting calls each handler in subscription order."""

	def __init__(self, name: str):
		self.name = name
		self._handlers: List[Callable] = []

	def connect(self, handler: Callable) -> Callable:
		self._handlers.append(handler)
		return handler  # usable as a decorator

	def disconnect(self, handler: Callable) -> None:
		if handler in self._handlers:
			self._handlers.remove(handler)

	def emit(self, *args) -> None:
		for handler in list(self._handlers):
			try:
				handler(*args)
			except Exception:
				# one failing subscriber must not starve the others
				logger.exception(f"[Session] Subscriber of '{self.name}' raised")


class SearchSession:
	"""
	One search stream bound to one transport.

	Requests run on an executor and may complete in any order. Each page-0 search opens a
	new query generation; responses from older generations are dropped, and within a
	generation a page is merged only if it is page 0 (replace) or the page right after the
	last merged one (append). Errors never touch the accumulated hits.

	Events:
	- on_results(ResultPage)
	- on_error(SearchError)
	- on_pending_requests_changed(int), on every change of the in-flight counter
	- on_search_started(), on_search_stopped(), when the counter leaves / returns to zero

	Each counter change and the events it triggers are delivered as one unit, so observers
	never see "stopped" while a later request is in flight. Handlers run under that unit:
	a handler must not wait on another thread that uses the session.
	"""

	def __init__(
		self,
		transport,
		query: Optional[QueryState] = None,
		executor: Optional[Executor] = None,
		name: str = "search",
	):
		self.transport = transport  # object with execute(QueryState) -> ResultPage
		self.name = name  # used in log lines only
		self._query = query or QueryState()  # live, editable query
		self._owns_executor = executor is None
		self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix=f"session-{name}")
		self._lock = threading.RLock()
		self._notify_lock = threading.RLock()  # counter change and its events go out together

		self._hits: List[Hit] = []  # all pages merged since the last page 0
		self._pending = 0  # requests in flight, any generation
		self._pending_pages: Set[Tuple[int, int]] = set()  # (generation, page) in flight
		self._generation = 0  # bumped by every page-0 search
		self._generation_query: Optional[QueryState] = None  # snapshot load_more() pages through
		self._last_page: Optional[ResultPage] = None  # last merged page
		self._merged_page = -1  # page number of the last merged page

		self.on_results = Signal("results")
		self.on_error = Signal("error")
		self.on_pending_requests_changed = Signal("pending_requests")
		self.on_search_started = Signal("search_started")
		self.on_search_stopped = Signal("search_stopped")

	# -- state ------------------------------------------------------------

	@property
	def hits(self) -> List[Hit]:
		with self._lock:
			return list(self._hits)

	@property
	def total_count(self) -> int:
		with self._lock:
			return self._last_page.total_count if self._last_page else 0

	@property
	def pending_requests(self) -> int:
		with self._lock:
			return self._pending

	@property
	def last_results(self) -> Optional[ResultPage]:
		with self._lock:
			return self._last_page

	@property
	def last_query(self) -> Optional[QueryState]:
		"""Snapshot sent by the latest page-0 search."""
		with self._lock:
			return self._generation_query

	@property
	def generation(self) -> int:
		with self._lock:
			return self._generation

	@property
	def query(self) -> QueryState:
		"""A copy of the live query; mutate it through the session methods."""
		with self._lock:
			return self._query.snapshot()

	@property
	def refinements(self) -> FacetRefinementSet:
		with self._lock:
			return self._query.refinements.copy()

	# -- mutations --------------------------------------------------------

	def set_query_text(self, text: Optional[str]) -> None:
		with self._lock:
			self._query.query = text or ""

	def set_numeric_filters(self, filters: List[NumericFilter]) -> None:
		with self._lock:
			self._query.numeric_filters = list(filters)

	def toggle_refinement(self, refinement: FacetRefinement) -> bool:
		with self._lock:
			return self._query.refinements.toggle(refinement)

	def has_refinement(self, refinement: FacetRefinement) -> bool:
		with self._lock:
			return self._query.refinements.has(refinement)

	def update_refinements(self, build: Callable[[FacetRefinementSet], FacetRefinementSet]) -> FacetRefinementSet:
		"""
		Replace the refinement set with build(current copy) in one step.
		build() works on a copy, so no partially updated set is ever visible.
		"""
		with self._lock:
			replacement = build(self._query.refinements.copy())
			self._query.refinements = replacement
			return replacement.copy()

	def set_faceting_mode(self, facet_name: str, mode: FacetingMode, search: bool = True) -> Optional[Future]:
		return FacetingModeConverter().convert(self, facet_name, mode, search=search)

	# -- requests ---------------------------------------------------------

	def search(self, query: Optional[QueryState] = None) -> Future:
		"""
		Start a new query from page 0. Accumulated hits stay until its first page arrives.
		Earlier requests are not cancelled; their responses are dropped when they arrive.
		"""
		with self._lock:
			if query is not None:
				self._query = query.snapshot()
			self._query.page = 0
			self._generation += 1
			snapshot = self._query.snapshot()
			self._generation_query = snapshot
			generation = self._generation
		logger.debug(f"[Session] {self.name}: search '{snapshot.query}' (generation {generation})")
		return self._issue(snapshot, generation)

	def can_load_more(self) -> bool:
		with self._lock:
			return self._can_load_more_locked()

	def _can_load_more_locked(self) -> bool:
		page = self._last_page
		if page is None or page.generation != self._generation:
			return False
		if page.is_empty or len(self._hits) >= page.total_count:
			return False
		return self._merged_page + 1 < page.nb_pages

	def load_more(self) -> Optional[Future]:
		"""
		Request the page after the last merged one, unless every hit is already loaded,
		nothing was received yet for the current query, or that page is already in flight.
		"""
		with self._lock:
			if not self._can_load_more_locked():
				return None
			next_page = self._merged_page + 1
			generation = self._generation
			if (generation, next_page) in self._pending_pages:
				return None
			snapshot = self._generation_query.with_page(next_page)
		logger.debug(f"[Session] {self.name}: load page {next_page} (generation {generation})")
		return self._issue(snapshot, generation)

	def _issue(self, snapshot: QueryState, generation: int) -> Future:
		with self._notify_lock:
			with self._lock:
				self._pending += 1
				self._pending_pages.add((generation, snapshot.page))
				count = self._pending
			self._notify_pending(count, started=count == 1)
		future = self._executor.submit(self.transport.execute, snapshot)
		future.add_done_callback(lambda f: self._complete(f, snapshot, generation))
		return future

	def _complete(self, future: Future, snapshot: QueryState, generation: int) -> None:
		page: Optional[ResultPage] = None
		error: Optional[SearchError] = None
		if not future.cancelled():
			exc = future.exception()
			if exc is None:
				page = future.result()
			elif isinstance(exc, SearchError):
				error = exc
			else:
				logger.opt(exception=exc).error(f"[Session] {self.name}: transport raised an unexpected error")
				error = SearchError(str(exc), kind=ErrorKind.UNEXPECTED)
				error.__cause__ = exc

		with self._notify_lock:
			with self._lock:
				self._pending = max(0, self._pending - 1)
				self._pending_pages.discard((generation, snapshot.page))
				count = self._pending
				current = self._generation
				stale = generation != current
				merged = False
				if page is not None and not stale:
					merged = self._merge_locked(page, snapshot, generation)

			if stale and (page is not None or error is not None):
				logger.debug(f"[Session] {self.name}: dropped response of generation {generation} (current {current})")
			elif merged:
				self.on_results.emit(page)
			elif error is not None:
				logger.warning(f"[Session] {self.name}: search failed: {error}")
				self.on_error.emit(error)
			self._notify_pending(count, stopped=count == 0)

	def _merge_locked(self, page: ResultPage, snapshot: QueryState, generation: int) -> bool:
		page.generation = generation
		page.hits_per_page = snapshot.hits_per_page  # the request decides the page size
		if page.query is None:
			page.query = snapshot
		# The page number in the response decides, not the arrival order
		if page.page == 0:
			self._hits = list(page.hits)
		elif page.page == self._merged_page + 1:
			self._hits.extend(page.hits)
		else:
			logger.debug(f"[Session] {self.name}: dropped out-of-order page {page.page} (last merged {self._merged_page})")
			return False
		self._merged_page = page.page
		self._last_page = page
		return True

	def _notify_pending(self, count: int, started: bool = False, stopped: bool = False) -> None:
		self.on_pending_requests_changed.emit(count)
		if started:
			self.on_search_started.emit()
		if stopped:
			self.on_search_stopped.emit()

	# -- lifecycle --------------------------------------------------------

	def close(self) -> None:
		if self._owns_executor:
			self._executor.shutdown(wait=False)

	def __enter__(self) -> "SearchSession":
		return self

	def __exit__(self, exc_type, exc, tb) -> None:
		self.close()

"""
Unit tests for SearchSession: page merging, load more, pending request tracking,
stale responses and error handling.
"""

import threading
import time

from loguru import logger

from moviesearch.errors import ErrorKind, SearchError, ServiceError
from moviesearch.models import ResultPage
from moviesearch.query import QueryState
from moviesearch.session import SearchSession


def make_session(transport, executor, hits_per_page=15, text="batman"):
	return SearchSession(transport, QueryState(query=text, hits_per_page=hits_per_page), executor=executor)


def test_batman_scenario(transport, executor):
	session = make_session(transport, executor)

	session.search()
	executor.run_all()
	assert len(session.hits) == 15
	assert session.total_count == 40

	assert session.load_more() is not None
	assert transport.queries[-1].page == 1
	executor.run_all()
	assert len(session.hits) == 30

	assert session.load_more() is not None
	assert transport.queries[-1].page == 2
	executor.run_all()
	assert len(session.hits) == 40

	sent = len(transport.queries)
	assert session.load_more() is None
	assert len(transport.queries) == sent
	assert executor.pending == []


def test_page_one_appends_to_page_zero(transport, executor):
	session = make_session(transport, executor)
	session.search()
	executor.run_all()
	page0 = session.hits

	session.load_more()
	executor.run_all()

	page1 = session.last_results.hits
	assert session.hits == page0 + page1


def test_page_zero_replaces_accumulated_hits(transport, executor):
	session = make_session(transport, executor)
	session.search()
	executor.run_all()
	session.load_more()
	executor.run_all()
	assert len(session.hits) == 30

	session.set_query_text("joker")
	session.search()
	executor.run_all()

	assert len(session.hits) == 15
	assert all(hit["objectID"].startswith("joker-") for hit in session.hits)


def test_load_more_is_a_noop_when_everything_is_loaded(executor, scripted_transport):
	transport = scripted_transport(total=10)
	session = make_session(transport, executor)
	session.search()
	executor.run_all()

	assert len(session.hits) == session.total_count
	assert not session.can_load_more()
	assert session.load_more() is None
	assert len(transport.queries) == 1


def test_load_more_before_any_result_is_a_noop(transport, executor):
	session = make_session(transport, executor)
	assert session.load_more() is None
	session.search()
	assert session.load_more() is None  # page 0 still in flight
	assert len(executor.calls) == 1


def test_load_more_does_not_duplicate_a_pending_page(transport, executor):
	session = make_session(transport, executor)
	session.search()
	executor.run_all()

	assert session.load_more() is not None
	assert session.load_more() is None
	assert len(executor.pending) == 1


def test_load_more_pages_through_the_last_searched_query(transport, executor):
	session = make_session(transport, executor)
	session.search()
	executor.run_all()

	session.set_query_text("edited but not searched")
	session.load_more()

	assert transport.queries[-1].query == "batman"


def test_pending_requests_counter(transport, executor):
	session = make_session(transport, executor)
	counts, transitions = [], []
	session.on_pending_requests_changed.connect(counts.append)
	session.on_search_started.connect(lambda: transitions.append("started"))
	session.on_search_stopped.connect(lambda: transitions.append("stopped"))

	session.search()
	session.search()
	assert session.pending_requests == 2

	executor.run(0)
	assert session.pending_requests == 1
	executor.run(0)
	assert session.pending_requests == 0

	assert counts == [1, 2, 1, 0]
	assert transitions == ["started", "stopped"]
	assert min(counts) >= 0


def test_stale_generation_is_dropped(executor, scripted_transport):
	transport = scripted_transport(total=40)
	session = make_session(transport, executor)
	results = []
	session.on_results.connect(results.append)

	session.set_query_text("bat")
	session.search()
	session.set_query_text("batman")
	session.search()

	# newer request completes first, then the older one
	executor.run(1)
	executor.run(0)

	assert len(results) == 1
	assert results[0].query.query == "batman"
	assert all(hit["objectID"].startswith("batman-") for hit in session.hits)
	assert session.pending_requests == 0


def test_dropped_response_is_logged_with_the_current_generation(transport, executor):
	session = make_session(transport, executor)
	messages = []
	sink = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
	try:
		session.search()
		session.search()
		executor.run(0)
	finally:
		logger.remove(sink)

	assert any("dropped response of generation 1 (current 2)" in m for m in messages)


def test_late_page_of_previous_query_is_dropped(executor, scripted_transport):
	transport = scripted_transport(total=100)
	session = make_session(transport, executor, hits_per_page=10)
	session.search()
	executor.run_all()
	session.load_more()
	executor.run_all()

	# a new query is issued, and a late page of the same generation would be page 2
	session.load_more()
	session.search()
	executor.run(1)  # page 0 of the new generation
	executor.run(0)  # page 2 of the old generation: dropped

	assert len(session.hits) == 10
	assert session.last_results.page == 0


def test_error_leaves_hits_untouched(transport, executor):
	session = make_session(transport, executor)
	errors = []
	session.on_error.connect(errors.append)
	session.search()
	executor.run_all()
	before = session.hits

	transport.fail_with = ServiceError("Invalid query", status=400)
	session.load_more()
	executor.run_all()

	assert session.hits == before
	assert len(errors) == 1
	assert isinstance(errors[0], ServiceError)
	assert errors[0].status == 400
	assert session.pending_requests == 0


def test_unexpected_transport_exception_is_reported_as_search_error(transport, executor):
	session = make_session(transport, executor)
	errors = []
	session.on_error.connect(errors.append)

	transport.fail_with = KeyError("hits")
	session.search()
	executor.run_all()

	assert len(errors) == 1
	assert isinstance(errors[0], SearchError)
	assert isinstance(errors[0].__cause__, KeyError)
	assert errors[0].kind == ErrorKind.UNEXPECTED


def test_empty_result_is_not_an_error(executor, scripted_transport):
	session = make_session(scripted_transport(total=0), executor)
	results, errors = [], []
	session.on_results.connect(results.append)
	session.on_error.connect(errors.append)

	session.search()
	executor.run_all()

	assert errors == []
	assert results[0].is_empty
	assert session.load_more() is None


def test_failing_subscriber_does_not_break_the_session(transport, executor):
	session = make_session(transport, executor)
	received = []

	def broken(page):
		raise RuntimeError("boom")

	session.on_results.connect(broken)
	session.on_results.connect(received.append)
	session.search()
	executor.run_all()

	assert len(received) == 1
	assert session.pending_requests == 0


def test_search_snapshots_the_query(transport, executor):
	session = make_session(transport, executor)
	session.search()
	session.set_query_text("changed")

	executor.run_all()

	assert transport.queries[0].query == "batman"
	assert isinstance(session.last_results, ResultPage)
	assert session.last_results.generation == session.generation


def test_search_with_explicit_query_resets_page(transport, executor):
	session = make_session(transport, executor)
	session.search(QueryState(query="alien", page=3, hits_per_page=15))
	executor.run_all()

	assert transport.queries[0].page == 0
	assert session.query.query == "alien"


def test_owned_executor_runs_requests(transport):
	with SearchSession(transport, QueryState(query="batman", hits_per_page=15)) as session:
		future = session.search()
		page = future.result(timeout=5)
	assert page.page == 0
	assert len(page.hits) == 15


class BarePageTransport:
	"""Builds pages from hits, page number and total count only."""

	def __init__(self, total=40):
		self.total = total

	def execute(self, query):
		start = query.page * query.hits_per_page
		end = min(self.total, start + query.hits_per_page)
		hits = [{"objectID": str(i)} for i in range(start, end)]
		return ResultPage(hits=hits, page=query.page, total_count=self.total)


def test_load_more_uses_the_requested_page_size(executor):
	session = make_session(BarePageTransport(), executor)

	session.search()
	executor.run_all()
	assert session.load_more() is not None
	executor.run_all()
	assert len(session.hits) == 30

	assert session.load_more() is not None
	executor.run_all()
	assert len(session.hits) == 40
	assert session.load_more() is None


def test_started_and_stopped_alternate_across_threads(transport):
	events = []
	first_idle = threading.Event()
	all_stopped = threading.Event()

	def on_pending(count):
		if count == 0 and not first_idle.is_set():
			first_idle.set()
			time.sleep(0.2)  # hold the worker between the counter change and "stopped"

	def on_stopped():
		events.append("stopped")
		if events.count("stopped") == 2:
			all_stopped.set()

	with SearchSession(transport, QueryState(query="batman", hits_per_page=15)) as session:
		session.on_pending_requests_changed.connect(on_pending)
		session.on_search_started.connect(lambda: events.append("started"))
		session.on_search_stopped.connect(on_stopped)

		session.search()
		assert first_idle.wait(timeout=5)
		session.search()
		assert all_stopped.wait(timeout=5)

	assert events == ["started", "stopped", "started", "stopped"]
	assert session.pending_requests == 0

"""
Shared fixtures: a small movie catalogue, a scripted transport and an executor
whose requests complete only when the test says so, in any order.
"""

from concurrent.futures import Executor, Future

import pytest

from moviesearch.catalogue import Catalogue
from moviesearch.errors import NetworkError
from moviesearch.models import ResultPage


MOVIES = [
	{"objectID": "1", "title": "Batman Begins", "year": 2005, "rating": 4, "genre": ["Action", "Crime"], "actors": ["Christian Bale", "Michael Caine"], "image": "https://img/1.jpg"},
	{"objectID": "2", "title": "The Dark Knight", "year": 2008, "rating": 5, "genre": ["Action", "Crime", "Drama"], "actors": ["Christian Bale", "Heath Ledger"], "image": "https://img/2.jpg"},
	{"objectID": "3", "title": "Batman", "year": 1989, "rating": 3, "genre": ["Action", "Fantasy"], "actors": ["Michael Keaton", "Jack Nicholson"], "image": ""},
	{"objectID": "4", "title": "Batman Returns", "year": 1992, "rating": 3, "genre": ["Action", "Fantasy"], "actors": ["Michael Keaton", "Danny DeVito"], "image": "https://img/4.jpg"},
	{"objectID": "5", "title": "Inception", "year": 2010, "rating": 5, "genre": ["Action", "sci-fi", "Thriller"], "actors": ["Leonardo DiCaprio", "Michael Caine"], "image": "https://img/5.jpg"},
	{"objectID": "6", "title": "Amelie", "year": 2001, "rating": 4, "genre": "Comedy, Romance", "actors": ["Audrey Tautou"], "image": "https://img/6.jpg"},
	{"objectID": "7", "title": "The Prestige", "year": 2006, "rating": 4, "genre": ["Drama", "Mystery", "Science Fiction"], "actors": ["Christian Bale", "Hugh Jackman", "Michael Caine"], "image": "https://img/7.jpg"},
	{"objectID": "8", "title": "Heat", "year": 1995, "rating": 4, "genre": ["Action", "Crime", "Drama"], "actors": ["Al Pacino", "Robert De Niro"], "image": "https://img/8.jpg"},
]


class ManualExecutor(Executor):
	"""Queues submitted calls; run() completes one of them."""

	def __init__(self):
		self.calls = []

	def submit(self, fn, *args, **kwargs):
		future = Future()
		self.calls.append((future, fn, args, kwargs))
		return future

	@property
	def pending(self):
		return [call for call in self.calls if not call[0].done()]

	def run(self, index=0):
		future, fn, args, kwargs = self.pending[index]
		try:
			result = fn(*args, **kwargs)
		except Exception as e:
			future.set_exception(e)
		else:
			future.set_result(result)

	def run_all(self):
		while self.pending:
			self.run(0)


class ScriptedTransport:
	"""
	Serves `total` numbered hits, paginated by the requested page size.
	Set `fail_with` to make the next execute() raise.
	"""

	def __init__(self, total=40, processing_time_ms=3):
		self.total = total
		self.processing_time_ms = processing_time_ms
		self.queries = []
		self.fail_with = None

	def execute(self, query):
		self.queries.append(query)
		if self.fail_with is not None:
			error, self.fail_with = self.fail_with, None
			raise error
		start = query.page * query.hits_per_page
		end = min(self.total, start + query.hits_per_page)
		hits = [{"objectID": f"{query.query}-{i}"} for i in range(start, end)]
		return ResultPage(
			hits=hits,
			page=query.page,
			total_count=self.total,
			processing_time_ms=self.processing_time_ms,
			query=query,
			hits_per_page=query.hits_per_page,
		)


@pytest.fixture
def executor():
	return ManualExecutor()


@pytest.fixture
def transport():
	return ScriptedTransport()


@pytest.fixture
def catalogue():
	return Catalogue(MOVIES)


@pytest.fixture
def network_error():
	return NetworkError("connection refused")


@pytest.fixture
def scripted_transport():
	return ScriptedTransport

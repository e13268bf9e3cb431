"""
Data models for the movie search client.
Defines the value types shared by the refinement set, the session and the transports.
"""

# Import dataclass to define simple "record-like" classes without boilerplate
from dataclasses import dataclass, field  # auto-generates __init__, __repr__, __eq__
# Import Enum for the closed sets of modes and error kinds
from enum import Enum  # faceting mode and result kinds
# Import typing helpers for precise and self-documenting types
from typing import Any, Dict, List, Optional  # hits are plain JSON mappings
import math  # page count rounding


# A single hit as returned by the service: an opaque JSON object
Hit = Dict[str, Any]


class FacetingMode(str, Enum):
	"""How several selected values of the same facet combine."""
	CONJUNCTIVE = "conjunctive"  # AND: every selected value must match
	DISJUNCTIVE = "disjunctive"  # OR: any selected value may match


class ResultKind(str, Enum):
	"""Outcome of one request, as seen by consumers."""
	HITS = "hits"  # valid response with at least one hit
	EMPTY = "empty"  # valid response with zero hits (not an error)


@dataclass(frozen=True)
class FacetRefinement:
	"""
	One selected filter value, e.g. genre = "Comedy".
	Immutable so it can live in sets and be shared between query snapshots.
	"""
	name: str  # facet attribute name
	value: str  # selected value

	def to_filter(self) -> str:
		"""Render as a service facet filter ("genre:Comedy")."""
		return f"{self.name}:{self.value}"


@dataclass(frozen=True)
class NumericFilter:
	"""A numeric comparison on a single attribute, e.g. year >= 1990."""
	field: str  # attribute name
	operator: str  # one of OPERATORS
	value: float  # comparison operand

	OPERATORS = ("<", "<=", "=", "!=", ">=", ">")

	def __post_init__(self):
		if self.operator not in self.OPERATORS:
			raise ValueError(f"Unsupported numeric operator '{self.operator}' for field '{self.field}'")

	def render(self) -> str:
		# Integral values are written without a trailing ".0"
		value = int(self.value) if float(self.value).is_integer() else self.value
		return f"{self.field} {self.operator} {value}"

	def matches(self, actual: Optional[float]) -> bool:
		if actual is None:
			return False
		op = self.operator
		if op == "<":
			return actual < self.value
		if op == "<=":
			return actual <= self.value
		if op == "=":
			return actual == self.value
		if op == "!=":
			return actual != self.value
		if op == ">=":
			return actual >= self.value
		return actual > self.value

	@classmethod
	def parse(cls, expression: str) -> "NumericFilter":
		"""Parse "year >= 1990" back into a filter."""
		# Two-character operators first so ">=" is not read as ">"
		for op in sorted(cls.OPERATORS, key=len, reverse=True):
			if op in expression:
				left, right = expression.split(op, 1)
				return cls(field=left.strip(), operator=op, value=float(right.strip()))
		raise ValueError(f"Cannot parse numeric filter '{expression}'")


@dataclass(frozen=True)
class FacetValueCount:
	value: str  # one distinct facet value
	count: int  # number of hits carrying it for the current query


@dataclass
class ResultPage:
	"""
	One page of results as delivered to the session.
	`query` is the snapshot of the query state that produced it and acts as the
	request/response correlation token.
	"""
	hits: List[Hit]  # ordered hits of this page
	page: int  # zero-based page number
	total_count: int  # nbHits for the whole query
	processing_time_ms: int = 0  # server-side processing time
	facet_counts: Dict[str, List[FacetValueCount]] = field(default_factory=dict)  # facet -> counts
	is_exhaustive: bool = True  # whether facet counts are exact
	query: Optional[Any] = None  # QueryState snapshot that produced this page
	disjunctive_facets: List[str] = field(default_factory=list)  # facets counted disjunctively
	hits_per_page: int = 20  # page size used by the request
	generation: int = 0  # query generation this page belongs to
	origin: str = "remote"  # "remote" or "local"

	@property
	def nb_pages(self) -> int:
		if self.hits_per_page <= 0:
			return 0
		return int(math.ceil(self.total_count / float(self.hits_per_page)))

	@property
	def is_empty(self) -> bool:
		return len(self.hits) == 0

	@property
	def kind(self) -> ResultKind:
		return ResultKind.EMPTY if self.is_empty else ResultKind.HITS

	def facets(self, name: str) -> List[FacetValueCount]:
		return list(self.facet_counts.get(name, []))


@dataclass
class MovieRecord:
	"""Typed view over a movie hit, with the fields the screens display."""
	title: Optional[str]
	title_highlighted: Optional[str]
	image_url: Optional[str]
	year: Optional[int]
	rating: Optional[float]  # as stored, fractional ratings included
	genres: List[str]

	@classmethod
	def from_hit(cls, hit: Hit) -> "MovieRecord":
		highlighted = (hit.get("_highlightResult") or {}).get("title") or {}
		year = hit.get("year")
		rating = hit.get("rating")
		return cls(
			title=hit.get("title"),
			title_highlighted=highlighted.get("value"),
			image_url=hit.get("image") or None,  # empty string means no poster
			year=int(year) if year is not None else None,
			rating=float(rating) if rating is not None else None,
			genres=list(hit.get("genre") or []),
		)


@dataclass
class ActorRecord:
	name: Optional[str]
	name_highlighted: Optional[str]
	movie_count: int = 0

	@classmethod
	def from_hit(cls, hit: Hit) -> "ActorRecord":
		highlighted = (hit.get("_highlightResult") or {}).get("name") or {}
		return cls(
			name=hit.get("name"),
			name_highlighted=highlighted.get("value"),
			movie_count=int(hit.get("movies", 0) or 0),
		)

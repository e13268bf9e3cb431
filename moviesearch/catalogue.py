"""
Local catalogue module.
Loads movies from JSONL, derives an actor index from them, and answers faceted
search requests in the same shape as the hosted service, so sessions can run
against local data through LocalTransport.
"""

# Standard libs for JSON parsing, regex, typing, and paths
import json  # read JSON lines
import re  # highlighting
import time  # processing time reported with each response
from collections import Counter  # facet counts
from pathlib import Path  # filesystem-safe paths
from typing import Any, Dict, Iterable, List, Optional  # type hints

# Fuzzy matching for typo tolerance on titles and names
from rapidfuzz import fuzz  # partial ratio scorer

# Console logging
from loguru import logger  # console logger

from .config import ACTORS_INDEX, MOVIES_INDEX
from .errors import ServiceError
from .models import Hit, NumericFilter
from .transport import SearchTransport


# Typo tolerance threshold for rapidfuzz partial ratio (0..100)
FUZZY_THRESHOLD = 85

HIGHLIGHT_PRE = "<em>"
HIGHLIGHT_POST = "</em>"


class Catalogue:
	"""
	In-memory movie and actor indexes.
	"""

	# Genre synonym mapping: common dataset spellings → single standard name
	GENRE_SYNONYMS = {
		'sci-fi': 'Science Fiction',
		'sci fi': 'Science Fiction',
		'scifi': 'Science Fiction',
		'science-fiction': 'Science Fiction',
		'science fiction': 'Science Fiction',
		'romantic': 'Romance',
		'animated': 'Animation',
		'biographical': 'Biography',
		'sports': 'Sport',
		'funny': 'Comedy',
	}

	# Attributes searched by free text, per index
	SEARCHABLE_ATTRIBUTES = {
		MOVIES_INDEX: ["title", "actors"],
		ACTORS_INDEX: ["name"],
	}
	# Attributes highlighted when the request does not say otherwise
	DEFAULT_HIGHLIGHT = {
		MOVIES_INDEX: ["title"],
		ACTORS_INDEX: ["name"],
	}

	def __init__(self, movies: Optional[Iterable[Hit]] = None):
		self.indexes: Dict[str, List[Hit]] = {MOVIES_INDEX: [], ACTORS_INDEX: []}
		self.add_movies(movies or [])

	@classmethod
	def load_jsonl(cls, filepath: str) -> "Catalogue":
		"""
		Load movies from a JSON Lines (JSONL) file where each line is one JSON object.
		Malformed lines are skipped with a warning.
		"""
		filepath = Path(filepath)  # normalize path

		# Validate the file presence early to give clear error messages
		if not filepath.exists():
			raise FileNotFoundError(f"Movie data file not found: {filepath}")

		logger.info(f"[Catalogue] Loading movies from {filepath}...")
		catalogue = cls()
		movies = []
		with open(filepath, 'r', encoding='utf-8') as f:
			for line_num, line in enumerate(f, 1):  # keep track of line number for diagnostics
				if not line.strip():
					continue
				try:
					movies.append(json.loads(line))
				except json.JSONDecodeError as e:
					logger.warning(f"[Catalogue] Skipping invalid JSON at line {line_num}: {e}")
		catalogue.add_movies(movies)
		logger.info(
			f"[Catalogue] Loaded {len(catalogue.indexes[MOVIES_INDEX])} movies and {len(catalogue.indexes[ACTORS_INDEX])} actors."
		)
		return catalogue

	def add_movies(self, raw_movies: Iterable[Dict[str, Any]]) -> None:
		for data in raw_movies:
			try:
				self.indexes[MOVIES_INDEX].append(self._parse_movie(data))
			except (TypeError, ValueError) as e:
				logger.warning(f"[Catalogue] Skipping movie {data.get('title', '?') if isinstance(data, dict) else data!r}: {e}")
		self.indexes[ACTORS_INDEX] = self._build_actors(self.indexes[MOVIES_INDEX])

	def _parse_movie(self, data: Dict[str, Any]) -> Hit:
		"""
		Convert a raw dictionary (from file) into a movie hit.
		Accepts comma-separated strings or lists for multi-valued fields.
		"""
		if not isinstance(data, dict):
			raise TypeError("movie record must be a JSON object")
		genres = [self._normalize_genre(g) for g in self._parse_comma_separated(data.get('genre', data.get('genres')))]
		year = data.get('year')
		rating = data.get('rating')
		return {
			"objectID": str(data.get('objectID', data.get('id', len(self.indexes[MOVIES_INDEX])))),
			"title": (data.get('title') or '').strip(),
			"image": data.get('image') or data.get('poster_url') or data.get('url') or '',
			"year": int(float(year)) if year not in (None, '') else None,
			"rating": self._parse_rating(rating),
			"genre": [g for g in genres if g],
			"actors": self._parse_comma_separated(data.get('actors')),
		}

	def _parse_rating(self, value):
		"""Keep fractional ratings; whole numbers stay ints so filters render them plainly."""
		if value in (None, ''):
			return None
		rating = float(value)
		return int(rating) if rating.is_integer() else rating

	def _parse_comma_separated(self, value) -> List[str]:
		if value is None:  # missing field
			return []
		if isinstance(value, list):  # already a list
			return [str(item).strip() for item in value if item]
		if isinstance(value, str):  # comma-separated string
			return [item.strip() for item in value.split(',') if item.strip()]
		return []  # any other type becomes empty

	def _normalize_genre(self, genre: str) -> str:
		"""Map a raw genre to its canonical form using synonyms; fall back to Title Case."""
		if not genre:
			return ''
		genre_lower = genre.strip().lower()
		if genre_lower in self.GENRE_SYNONYMS:
			return self.GENRE_SYNONYMS[genre_lower]
		return genre.strip().title()

	def _build_actors(self, movies: List[Hit]) -> List[Hit]:
		"""One actor record per distinct name, most prolific first."""
		counts = Counter(actor for movie in movies for actor in movie["actors"])
		ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
		return [
			{"objectID": re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-"), "name": name, "movies": count}
			for name, count in ordered
		]

	# -- querying ---------------------------------------------------------

	def query(self, index_name: str, params: Dict[str, Any]) -> Dict[str, Any]:
		"""Answer one request with a service-style response payload."""
		if index_name not in self.indexes:
			raise ServiceError(f"Index {index_name} does not exist", status=404)
		start = time.time()

		text = (params.get("query") or "").strip().lower()
		facet_filters = params.get("facetFilters") or []
		numeric_filters = [self._numeric(f) for f in params.get("numericFilters") or []]
		searchable = self.SEARCHABLE_ATTRIBUTES.get(index_name, [])

		scored = []
		for position, record in enumerate(self.indexes[index_name]):
			score = self._text_score(record, text, searchable)
			if score is None:
				continue
			if not self._matches_facets(record, facet_filters):
				continue
			if not self._matches_numeric(record, numeric_filters):
				continue
			scored.append((score, position, record))
		# Best text match first; catalogue order breaks ties
		scored.sort(key=lambda item: (-item[0], item[1]))
		matches = [record for _, _, record in scored]

		facets = {}
		for name in params.get("facets") or []:
			counter = Counter()
			for record in matches:
				counter.update(self._values(record, name))
			facets[name] = dict(sorted(counter.items(), key=lambda item: (-item[1], item[0])))

		hits_per_page = int(params.get("hitsPerPage", 20))
		page = int(params.get("page", 0))
		window = matches[page * hits_per_page:(page + 1) * hits_per_page] if hits_per_page > 0 else []
		highlight = params.get("attributesToHighlight")
		if highlight is None:
			highlight = self.DEFAULT_HIGHLIGHT.get(index_name, [])
		retrieve = params.get("attributesToRetrieve")
		hits = [self._render_hit(record, text, highlight, retrieve) for record in window]

		return {
			"hits": hits,
			"nbHits": len(matches),
			"page": page,
			"nbPages": (len(matches) + hits_per_page - 1) // hits_per_page if hits_per_page > 0 else 0,
			"hitsPerPage": hits_per_page,
			"processingTimeMS": int((time.time() - start) * 1000),
			"facets": facets,
			"exhaustiveFacetsCount": True,
			"query": params.get("query") or "",
		}

	@staticmethod
	def _values(record: Hit, attribute: str) -> List[str]:
		value = record.get(attribute)
		if value is None:
			return []
		if isinstance(value, list):
			return [str(v) for v in value]
		return [str(value)]

	def _text_score(self, record: Hit, text: str, attributes: List[str]) -> Optional[float]:
		"""100 for a prefix match of every word, the fuzzy score above the threshold, else None."""
		if not text:
			return 0.0
		values = [v.lower() for a in attributes for v in self._values(record, a)]
		words = text.split()
		if all(any(re.search(r"\b" + re.escape(w), v) for v in values) for w in words):
			return 100.0
		best = max((fuzz.partial_ratio(text, v) for v in values), default=0.0)
		return best if best >= FUZZY_THRESHOLD else None

	def _matches_facets(self, record: Hit, facet_filters: List[Any]) -> bool:
		# Top-level entries are ANDed, nested lists are ORed
		for entry in facet_filters:
			options = entry if isinstance(entry, list) else [entry]
			if not any(self._matches_facet(record, option) for option in options):
				return False
		return True

	def _matches_facet(self, record: Hit, expression: str) -> bool:
		name, _, value = str(expression).partition(":")
		negate = value.startswith("-")
		if negate:
			value = value[1:]
		found = value in self._values(record, name)
		return not found if negate else found

	@staticmethod
	def _numeric(expression: Any) -> List[NumericFilter]:
		options = expression if isinstance(expression, list) else [expression]
		return [NumericFilter.parse(option) for option in options]

	@staticmethod
	def _matches_numeric(record: Hit, numeric_filters: List[List[NumericFilter]]) -> bool:
		for options in numeric_filters:
			if not any(f.matches(record.get(f.field)) for f in options):
				return False
		return True

	def _render_hit(self, record: Hit, text: str, highlight: List[str], retrieve: Optional[List[str]]) -> Hit:
		if retrieve is None or "*" in retrieve:
			hit = dict(record)
		else:
			hit = {key: record[key] for key in retrieve if key in record}
			hit["objectID"] = record["objectID"]
		if highlight:
			hit["_highlightResult"] = {
				attribute: self._highlight(record.get(attribute), text)
				for attribute in highlight
				if attribute in record
			}
		return hit

	@staticmethod
	def _highlight(value: Any, text: str) -> Dict[str, Any]:
		raw = "" if value is None else str(value)
		words = [w for w in text.split() if w]
		if not words:
			return {"value": raw, "matchLevel": "none", "matchedWords": []}
		pattern = re.compile(r"\b(" + "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True)) + r")", re.I)
		matched = sorted({m.group(1).lower() for m in pattern.finditer(raw)})
		highlighted = pattern.sub(lambda m: f"{HIGHLIGHT_PRE}{m.group(1)}{HIGHLIGHT_POST}", raw)
		if not matched:
			level = "none"
		elif len(matched) == len(set(words)):
			level = "full"
		else:
			level = "partial"
		return {"value": highlighted, "matchLevel": level, "matchedWords": matched}


class LocalTransport(SearchTransport):
	"""Runs requests against an in-memory Catalogue instead of the network."""

	origin = "local"

	def __init__(self, catalogue: Catalogue, index_name: str = MOVIES_INDEX):
		super().__init__(index_name)
		self.catalogue = catalogue

	def run_queries(self, index_name: str, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
		return [self.catalogue.query(index_name, params) for params in batch]

"""
Configuration for the movie search client.
Defaults live in module constants; from_env() lets deployments override them.
"""

import os  # environment-based settings
from typing import Optional  # optional credentials

from pydantic import BaseModel  # validated settings model


# Default location of the local search API (see api.py)
DEFAULT_API_URL = "http://localhost:8000"
# Default catalogue used by the local transport and the API server
DEFAULT_CATALOGUE_PATH = "data/movies.jsonl"

MOVIES_INDEX = "movies"
ACTORS_INDEX = "actors"

# Page sizes used by the two movie screens and the actor list
LIST_HITS_PER_PAGE = 15
GRID_HITS_PER_PAGE = 30
ACTOR_HITS_PER_PAGE = 10

# Rows left before the end of a list that trigger loading the next page
PREFETCH_DISTANCE = 5


class SearchSettings(BaseModel):
	app_id: Optional[str] = None  # service application id (hosted service only)
	api_key: Optional[str] = None  # search-only API key (hosted service only)
	host: str = DEFAULT_API_URL  # service base URL
	movies_index: str = MOVIES_INDEX
	actors_index: str = ACTORS_INDEX
	hits_per_page: int = LIST_HITS_PER_PAGE
	grid_hits_per_page: int = GRID_HITS_PER_PAGE
	actor_hits_per_page: int = ACTOR_HITS_PER_PAGE
	timeout_s: float = 10.0
	catalogue_path: str = DEFAULT_CATALOGUE_PATH

	def base_url(self) -> str:
		return self.host.rstrip("/")

	@classmethod
	def from_env(cls) -> "SearchSettings":
		"""Read MOVIESEARCH_* variables, falling back to the defaults above."""
		env = os.environ
		values = {
			"app_id": env.get("MOVIESEARCH_APP_ID"),
			"api_key": env.get("MOVIESEARCH_API_KEY"),
			"host": env.get("MOVIESEARCH_HOST"),
			"movies_index": env.get("MOVIESEARCH_MOVIES_INDEX"),
			"actors_index": env.get("MOVIESEARCH_ACTORS_INDEX"),
			"hits_per_page": env.get("MOVIESEARCH_HITS_PER_PAGE"),
			"timeout_s": env.get("MOVIESEARCH_TIMEOUT_S"),
			"catalogue_path": env.get("MOVIESEARCH_CATALOGUE"),
		}
		# pydantic coerces the numeric strings
		return cls(**{k: v for k, v in values.items() if v is not None})

"""
Search transports.
A transport executes one QueryState against a search backend and returns a ResultPage.
HttpTransport talks to a hosted Algolia-compatible service with requests.
"""

import time  # measure request latency
from typing import Any, Dict, List, Optional  # type hints

import requests  # HTTP client
from loguru import logger  # console logging

from .config import SearchSettings
from .errors import NetworkError, ServiceError
from .models import ResultPage
from .query import QueryState, encode_params, page_from_response


class SearchTransport:
	"""
	Base transport. Subclasses implement run_queries(), which sends a batch of
	parameter mappings and returns one raw response per mapping, in order.
	"""

	origin = "remote"

	def __init__(self, index_name: str):
		self.index_name = index_name

	def run_queries(self, index_name: str, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
		raise NotImplementedError

	def execute(self, query: QueryState) -> ResultPage:
		"""Run the main request and the disjunctive count requests as one batch."""
		extra = query.disjunctive_count_params()
		batch = [self._strip_client_params(query.to_params())] + [params for _, params in extra]
		logger.debug(f"[Transport] {self.index_name}: {len(batch)} request(s) for query='{query.query}' page={query.page}")
		responses = self.run_queries(self.index_name, batch)
		if len(responses) != len(batch):
			raise ServiceError(f"Expected {len(batch)} results, got {len(responses)}")
		disjunctive = {name: payload for (name, _), payload in zip(extra, responses[1:])}
		return page_from_response(responses[0], query, disjunctive, origin=self.origin)

	@staticmethod
	def _strip_client_params(params: Dict[str, Any]) -> Dict[str, Any]:
		# disjunctive faceting is resolved client-side by the count requests
		params = dict(params)
		params.pop("disjunctiveFacets", None)
		return params


class HttpTransport(SearchTransport):
	"""
	Transport for a hosted service exposing the multi-query endpoint
	POST /1/indexes/*/queries.
	"""

	def __init__(
		self,
		index_name: str,
		settings: Optional[SearchSettings] = None,
		session: Optional[requests.Session] = None,
	):
		super().__init__(index_name)
		self.settings = settings or SearchSettings.from_env()
		self.http = session or requests.Session()

	def _headers(self) -> Dict[str, str]:
		headers = {"Content-Type": "application/json"}
		if self.settings.app_id:
			headers["X-Algolia-Application-Id"] = self.settings.app_id
		if self.settings.api_key:
			headers["X-Algolia-API-Key"] = self.settings.api_key
		return headers

	def run_queries(self, index_name: str, batch: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
		url = f"{self.settings.base_url()}/1/indexes/*/queries"
		body = {"requests": [{"indexName": index_name, "params": encode_params(p)} for p in batch]}
		start = time.time()
		try:
			response = self.http.post(url, json=body, headers=self._headers(), timeout=self.settings.timeout_s)
		except requests.RequestException as e:
			logger.warning(f"[Transport] Request to {url} failed: {e}")
			raise NetworkError(str(e)) from e

		try:
			payload = response.json()
		except ValueError as e:
			raise NetworkError(f"Unreadable response body (HTTP {response.status_code})") from e

		if response.status_code >= 400:
			message = payload.get("message", "Unknown error") if isinstance(payload, dict) else str(payload)
			raise ServiceError(message, status=payload.get("status", response.status_code) if isinstance(payload, dict) else response.status_code)

		elapsed_ms = (time.time() - start) * 1000
		logger.debug(f"[Transport] {index_name}: {len(batch)} result(s) in {elapsed_ms:.2f} ms")
		return list(payload.get("results") or [])

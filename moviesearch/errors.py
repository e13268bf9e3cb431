"""
Error types raised by transports and reported by search sessions.
An empty result is not an error; see ResultPage.is_empty.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
	NETWORK = "network"  # no response from the service
	SERVICE = "service"  # the service answered with an error
	UNEXPECTED = "unexpected"  # the transport failed in a way it does not report itself


class SearchError(Exception):
	"""
	Base class for every failure a search request can end with.
	A bare SearchError wraps an unexpected transport exception unless given another kind.
	"""
	kind: ErrorKind = ErrorKind.UNEXPECTED

	def __init__(self, *args, kind: Optional[ErrorKind] = None):
		super().__init__(*args)
		if kind is not None:
			self.kind = kind


class NetworkError(SearchError):
	"""Transport failure: connection refused, timeout, unreadable body."""
	kind = ErrorKind.NETWORK


class ServiceError(SearchError):
	"""The backend returned a well-formed error response."""
	kind = ErrorKind.SERVICE

	def __init__(self, message: str, status: Optional[int] = None):
		super().__init__(message)
		self.message = message
		self.status = status

	def __str__(self) -> str:
		if self.status is None:
			return self.message
		return f"{self.message} (status {self.status})"

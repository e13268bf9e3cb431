"""
FastAPI server exposing the local movie catalogue as a faceted search service.
Endpoints:
- GET /health: basic health check
- POST /1/indexes/{index}/query: one search request ({"params": "<urlencoded>"})
- POST /1/indexes/*/queries: a batch of requests, as sent by HttpTransport

Startup loads the catalogue from MOVIESEARCH_CATALOGUE (default data/movies.jsonl).
"""

# Import standard libraries for timing
import time  # measure startup and request latencies
from typing import Any, Dict, List, Optional  # precise typing for clarity

# Import FastAPI for building the web API and Pydantic for request/response models
from fastapi import FastAPI, Request  # FastAPI primitives
from fastapi.responses import JSONResponse  # service-style error bodies
from pydantic import BaseModel  # request schema definitions

# Import our internal modules for data loading and search
from moviesearch.catalogue import Catalogue  # loads movies and answers queries
from moviesearch.config import SearchSettings  # catalogue location
from moviesearch.errors import ServiceError  # unknown index and similar
from moviesearch.query import decode_params  # "params" string decoding

# Import loguru for simple, structured console logging
from loguru import logger  # convenient console logger

# Instantiate the FastAPI application with metadata
app = FastAPI(title="Movie Search API", version="1.0.0")  # web app

# Globals that hold the catalogue instance and measured startup time
CATALOGUE: Optional[Catalogue] = None  # will point to the loaded catalogue
STARTUP_TIME_S: float = 0.0  # measures how long startup took


class QueryBody(BaseModel):
	params: str = ""  # urlencoded search parameters


class BatchRequest(BaseModel):
	indexName: str
	params: str = ""


class BatchBody(BaseModel):
	requests: List[BatchRequest]


@app.on_event("startup")
async def startup_event():
	"""Load the catalogue once, unless one was installed beforehand (tests)."""
	global CATALOGUE, STARTUP_TIME_S
	if CATALOGUE is not None:
		return
	start = time.time()
	settings = SearchSettings.from_env()
	logger.info(f"[API] Startup: loading catalogue from {settings.catalogue_path}...")
	CATALOGUE = Catalogue.load_jsonl(settings.catalogue_path)
	STARTUP_TIME_S = time.time() - start
	logger.info(f"[API] Startup complete in {STARTUP_TIME_S:.2f}s.")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
	return JSONResponse(status_code=exc.status or 400, content={"message": exc.message, "status": exc.status or 400})


def _run(index_name: str, encoded: str) -> Dict[str, Any]:
	if CATALOGUE is None:  # catalogue must be ready to serve
		logger.warning("[API] Query received but catalogue not loaded")
		raise ServiceError("Catalogue not loaded", status=503)
	params = decode_params(encoded)
	logger.debug(f"[API] {index_name} params={params}")
	result = CATALOGUE.query(index_name, params)
	result["index"] = index_name
	return result


@app.get("/health")
async def health():
	"""Return minimal health info for liveness/readiness probes."""
	return {
		"status": "ok",
		"catalogue_ready": CATALOGUE is not None,
		"startup_seconds": round(STARTUP_TIME_S, 2),
	}


@app.post("/1/indexes/{index_name}/query")
async def query_index(index_name: str, body: QueryBody):
	"""Execute one faceted search request."""
	start = time.time()
	result = _run(index_name, body.params)
	logger.info(f"[API] /query {index_name} served {len(result['hits'])} hits in {(time.time() - start) * 1000:.2f} ms")
	return result


@app.post("/1/indexes/*/queries")
async def query_batch(body: BatchBody):
	"""Execute several requests and return their results in order."""
	start = time.time()
	results = [_run(r.indexName, r.params) for r in body.requests]
	logger.info(f"[API] /queries served {len(results)} result(s) in {(time.time() - start) * 1000:.2f} ms")
	return {"results": results}


if __name__ == '__main__':
	import uvicorn  # ASGI server, only needed when run directly

	uvicorn.run("api:app", host="0.0.0.0", port=8000)

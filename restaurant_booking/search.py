"""Search orchestration: resolve -> nearby -> enrich -> sort."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from . import config
from .cache import ResultCache
from .enricher import DetailEnricher, DetailFetchFailure, EnrichResult
from .fetcher import RateLimitedFetcher
from .geocoding import PlaceLookup, ResolutionError
from .http import HttpClient, RequestMetrics
from .models import CandidateStub, Coordinate, Place, SearchRequest
from .nearby import NearbySearch, compose_search_query
from .places_client import PlacesClient

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Owns the long-lived cache and breaker state shared by all searches."""

    def __init__(
        self,
        places_client: PlacesClient,
        cache: Optional[ResultCache] = None,
        fetcher: Optional[RateLimitedFetcher] = None,
        concurrency: int = config.DETAIL_CONCURRENCY,
        max_candidates: int = config.MAX_CANDIDATES,
        extended_fields: bool = True,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        self.places = places_client
        self.metrics: Optional[RequestMetrics] = getattr(places_client, "metrics", None)
        self.cache = cache if cache is not None else ResultCache(**_cache_hooks(self.metrics))
        self.fetcher = fetcher if fetcher is not None else RateLimitedFetcher()
        self.concurrency = concurrency
        self.lookup = PlaceLookup(places_client)
        self.nearby = NearbySearch(places_client, max_candidates=max_candidates)
        self.enricher = DetailEnricher(places_client, self.cache, self.fetcher, extended_fields=extended_fields)

    def resolve_origin(self, request: SearchRequest) -> Coordinate:
        if request.place_name:
            return self.lookup.resolve(request.place_name, request.locale)
        if request.origin is not None:
            return request.origin
        raise ResolutionError("Either location coordinates or place name must be provided")

    def search(self, request: SearchRequest) -> List[Place]:
        results = self.search_results(request)
        return [r.place for r in results if r.place is not None]

    def search_results(self, request: SearchRequest) -> List[EnrichResult]:
        """Like ``search`` but keeps per-candidate failures, ordered successes first by distance."""
        origin = self.resolve_origin(request)
        query = compose_search_query(request.keyword, request.cuisine_filters)
        candidates = self.nearby.fetch_candidates(
            origin,
            query,
            request.radius_meters,
            price_tier=request.price_tier,
            locale=request.locale,
            max_candidates=request.max_results,
        )
        if not candidates:
            logger.info("No candidates within %sm", request.radius_meters)
            return []

        tasks = [_enrich_task(self.enricher, c, request.locale) for c in candidates]
        raw_results = self.fetcher.run_all(tasks, concurrency=self.concurrency)

        succeeded: List[EnrichResult] = []
        failed: List[EnrichResult] = []
        for candidate, result in zip(candidates, raw_results):
            if result is None or result.place is None:
                failed.append(result or _task_crashed(candidate))
                continue
            # Trust the candidate distance computed before enrichment.
            stamped = result.place.with_distance(candidate.distance_meters)
            succeeded.append(EnrichResult(place_id=result.place_id, place=stamped))

        succeeded.sort(key=lambda r: (r.place.distance_meters, r.place_id))
        logger.info(
            "Enriched %s/%s candidates (%s failed)", len(succeeded), len(candidates), len(failed)
        )
        return succeeded + failed

    def get_performance_metrics(self) -> Dict[str, Any]:
        snapshot = self.fetcher.metrics()
        metrics: Dict[str, Any] = {
            "avg_latency_ms": round(snapshot.avg_latency_ms, 2),
            "failure_count": snapshot.failure_count,
            "total_samples": snapshot.total_samples,
            "cache_size": self.cache.size(),
            "circuit_open": snapshot.circuit_open,
        }
        if self.metrics is not None:
            metrics["requests"] = self.metrics.snapshot()
        return metrics


def _enrich_task(enricher: DetailEnricher, candidate: CandidateStub, locale: str) -> Callable[[], EnrichResult]:
    return lambda: enricher.enrich_result(candidate, locale)


def _task_crashed(candidate: CandidateStub) -> EnrichResult:
    failure = DetailFetchFailure(place_id=candidate.place_id, reason="task_error")
    return EnrichResult(place_id=candidate.place_id, failure=failure)


def _cache_hooks(metrics: Optional[RequestMetrics]) -> Dict[str, Any]:
    if metrics is None:
        return {}
    return {"on_hit": metrics.inc_cache_hit, "on_join": metrics.inc_dedup_join}


def build_orchestrator(
    api_key: str,
    cache_ttl_seconds: float = config.CACHE_TTL_SECONDS,
    failure_threshold: int = config.CIRCUIT_FAILURE_THRESHOLD,
    cool_down_seconds: float = config.CIRCUIT_COOLDOWN_SECONDS,
    max_latency_samples: int = config.MAX_LATENCY_SAMPLES,
    concurrency: int = config.DETAIL_CONCURRENCY,
    max_candidates: int = config.MAX_CANDIDATES,
    http_timeout: int = config.HTTP_TIMEOUT_SECONDS,
) -> SearchOrchestrator:
    metrics = RequestMetrics()
    http_client = HttpClient(api_key=api_key, timeout=http_timeout, metrics=metrics)
    places_client = PlacesClient(http_client, metrics=metrics)
    cache = ResultCache(ttl_seconds=cache_ttl_seconds, **_cache_hooks(metrics))
    fetcher = RateLimitedFetcher(
        failure_threshold=failure_threshold,
        cool_down_seconds=cool_down_seconds,
        max_latency_samples=max_latency_samples,
    )
    return SearchOrchestrator(
        places_client,
        cache=cache,
        fetcher=fetcher,
        concurrency=concurrency,
        max_candidates=max_candidates,
    )

"""
Model Cache: memoized advisor results keyed by a structural signature, with
staleness-based invalidation, LRU eviction, version history, and an
at-most-one-recompute-per-signature contract.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import hashlib
import json
import logging
import math
import threading
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone

from blockflow.graph.analysis_model import FlowFeatures
from blockflow.optimization.data_model import (
    AppliedOptimization,
    CachedModel,
    CacheStats,
    ModelMetadata,
    ModelVersion,
    OptimizationPredictions,
    OptimizerSettings,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

COMPLEXITY_BUCKET = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_signature(features: FlowFeatures) -> str:
    """
    md5 of canonical JSON over the bucketed feature subset: node and
    connection counts, block-type histogram, complexity floored to a bucket
    of 5, and cyclomatic complexity.
    """
    summary = {
        "node_count": features.node_count,
        "connection_count": features.connection_count,
        "block_types": dict(sorted(features.block_type_distribution.items())),
        "complexity": (features.complexity // COMPLEXITY_BUCKET) * COMPLEXITY_BUCKET,
        "cyclomatic_complexity": features.cyclomatic_complexity,
    }
    canonical = json.dumps(summary, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


class ModelCache:
    """
    Signature -> CachedModel map. Thread-safe for get/put; get_or_compute
    coordinates concurrent coroutines so that one signature is computed once,
    including coroutines running on event loops in other threads.
    """

    def __init__(
        self, settings: OptimizerSettings | None = None, clock: Clock | None = None
    ) -> None:
        self.settings = settings or OptimizerSettings()
        self._clock = clock or _utcnow
        self._lock = threading.RLock()
        self._models: dict[str, CachedModel] = {}
        self._versions: dict[str, list[ModelVersion]] = {}
        self._inflight: dict[str, concurrent.futures.Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._models

    def is_stale(self, model: CachedModel, now: datetime | None = None) -> bool:
        now = now or self._clock()
        too_old = now - model.created_at > timedelta(hours=self.settings.cache_max_age_hours)
        return too_old or model.metadata.accuracy < self.settings.cache_min_accuracy

    def get(self, signature: str) -> CachedModel | None:
        """Fresh model or None. Stale entries are dropped; hits update last_used and usage_count."""
        with self._lock:
            model = self._models.get(signature)
            if model is None:
                return None
            now = self._clock()
            if self.is_stale(model, now):
                logger.debug("Dropping stale model %s (v%d)", signature, model.version)
                del self._models[signature]
                return None
            model.last_used = now
            model.metadata.usage_count += 1
            logger.debug("Cache hit %s (uses=%d)", signature, model.metadata.usage_count)
            return model

    def put(
        self,
        signature: str,
        features: FlowFeatures,
        predictions: OptimizationPredictions,
        optimizations: Iterable[AppliedOptimization],
        confidence: float,
        changes: Iterable[str] = (),
    ) -> CachedModel:
        """Store a new version for signature; accuracy is confidence / 100."""
        with self._lock:
            now = self._clock()
            history = self._versions.setdefault(signature, [])
            version = history[-1].version + 1 if history else 1
            accuracy = max(0.0, min(1.0, confidence / 100))
            history.append(
                ModelVersion(
                    version=version, created_at=now, accuracy=accuracy, changes=tuple(changes)
                )
            )
            model = CachedModel(
                signature=signature,
                version=version,
                created_at=now,
                last_used=now,
                features=features,
                predictions=predictions,
                optimizations=tuple(optimizations),
                metadata=ModelMetadata(accuracy=accuracy, confidence=confidence),
            )
            self._models[signature] = model
            if len(self._models) > self.settings.cache_capacity:
                self._evict_least_recently_used()
            return model

    def _evict_least_recently_used(self) -> None:
        count = max(1, math.floor(len(self._models) * self.settings.cache_eviction_fraction))
        by_age = sorted(self._models.values(), key=lambda m: m.last_used)
        for model in by_age[:count]:
            del self._models[model.signature]
        logger.debug("Evicted %d least recently used models", count)

    async def get_or_compute(
        self, signature: str, compute: Callable[[], Awaitable[CachedModel]]
    ) -> tuple[CachedModel, bool]:
        """
        Return (model, reused). On a miss, compute() runs once per signature;
        concurrent callers await that result instead of computing again. If
        the computation fails, waiters retry on their own.
        """
        while True:
            cached = self.get(signature)
            if cached is not None:
                return cached, True
            with self._lock:
                pending = self._inflight.get(signature)
                if pending is None:
                    # Not bound to any loop; a running future cannot be cancelled by waiters.
                    future: concurrent.futures.Future = concurrent.futures.Future()
                    future.set_running_or_notify_cancel()
                    self._inflight[signature] = future
            if pending is None:
                break
            result = await asyncio.shield(asyncio.wrap_future(pending))
            if result is not None:
                return result, True

        try:
            model = await compute()
        except BaseException:
            future.set_result(None)
            raise
        else:
            future.set_result(model)
            return model, False
        finally:
            with self._lock:
                self._inflight.pop(signature, None)

    def versions(self, signature: str) -> list[ModelVersion]:
        with self._lock:
            return list(self._versions.get(signature, []))

    def models(self) -> list[CachedModel]:
        with self._lock:
            return list(self._models.values())

    def stats(self) -> CacheStats:
        with self._lock:
            models = list(self._models.values())
        if not models:
            return CacheStats(total_models=0, total_usage=0, average_accuracy=0.0)
        created = [m.created_at for m in models]
        return CacheStats(
            total_models=len(models),
            total_usage=sum(m.metadata.usage_count for m in models),
            average_accuracy=round(sum(m.metadata.accuracy for m in models) / len(models), 4),
            oldest_created_at=min(created),
            newest_created_at=max(created),
        )

    def clear(self) -> None:
        """Drop every model and version record. In-flight computations still complete."""
        with self._lock:
            self._models.clear()
            self._versions.clear()
        logger.info("Model cache cleared")

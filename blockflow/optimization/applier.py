"""
Optimization Applier: apply accepted candidates to a copy of a flow.
The caller's flow is never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from blockflow.graph.blocks import CACHE_MARKER, CACHE_TTL, PARALLEL_MARKER
from blockflow.graph.flow import Flow, copy_flow
from blockflow.optimization.data_model import AppliedOptimization, OptimizerSettings

logger = logging.getLogger(__name__)

# Recorded with their description; the flow structure is left unchanged.
RECORD_ONLY_TYPES = frozenset({"merging", "reordering"})


def optimized_copy(flow: Flow) -> Flow:
    working = copy_flow(flow)
    working.id = f"{flow.id}_optimized"
    working.name = f"{flow.name} (Optimized)"
    return working


def apply_optimizations(
    flow: Flow,
    optimizations: Iterable[AppliedOptimization],
    settings: OptimizerSettings | None = None,
) -> tuple[Flow, list[AppliedOptimization]]:
    """
    Apply candidates in order to a copy of flow.

    Targets missing from the working copy (never there, or removed by an
    earlier elimination) are ignored; a candidate with no remaining target is
    skipped. Returns the new flow and the changes actually applied, each
    listing only the blocks it touched.
    """
    settings = settings or OptimizerSettings()
    working = optimized_copy(flow)
    applied: list[AppliedOptimization] = []

    for opt in optimizations:
        targets = tuple(
            bid for bid in dict.fromkeys(opt.affected_blocks) if working.find_block(bid)
        )
        if not targets:
            logger.debug("Skipping %s on %s: no target block left", opt.type, working.id)
            continue

        if opt.type == "parallelization":
            for bid in targets:
                working.set_parameter(bid, PARALLEL_MARKER, "boolean", True)
        elif opt.type == "caching":
            for bid in targets:
                working.set_parameter(bid, CACHE_MARKER, "boolean", True)
                working.set_parameter(bid, CACHE_TTL, "number", settings.cache_ttl_seconds)
        elif opt.type == "elimination":
            for bid in targets:
                working.remove_block(bid)
        elif opt.type not in RECORD_ONLY_TYPES:
            logger.warning("Unknown optimization type %r ignored", opt.type)
            continue

        applied.append(
            AppliedOptimization(
                type=opt.type,
                description=opt.description,
                affected_blocks=targets,
                estimated_gain=opt.estimated_gain,
                confidence=opt.confidence,
            )
        )

    return working, applied

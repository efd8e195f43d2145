"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - ingest_outcomes_total{outcome}
    - ingest_latency_ms{outcome}
    - chunk_batch_failures_total
    - retrieval_matches
    - intent_classifications_total{category}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

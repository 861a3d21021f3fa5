# receipt_export/api/metrics.py
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Prometheus metrics scrape endpoint")
def prometheus_metrics():
    """Export counters, image fetch outcomes and generation latency."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

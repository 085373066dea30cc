"""
FastAPI dependencies: the shared pipeline instance and request identity.
"""

from functools import lru_cache

from fastapi import Request

from autoquiz.pipeline import AutoCreatePipeline, build_pipeline


@lru_cache
def get_pipeline() -> AutoCreatePipeline:
    """Build the pipeline once per process."""
    return build_pipeline()


def get_identity(request: Request) -> str:
    """Client IP, honouring the first hop of X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"

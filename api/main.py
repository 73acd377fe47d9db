"""FastAPI REST API for html-compressor."""

from __future__ import annotations

import hashlib
import json
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from html_compressor import (
    CompressionResult,
    CompressorOptions,
    compress,
    compress_with_stats,
)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Redis Cache
# ---------------------------------------------------------------------------

redis_client: aioredis.Redis | None = None

# Cache TTL in seconds (default: 1 hour)
CACHE_TTL = int(os.getenv("CACHE_TTL", "3600"))

# Redis connection URL
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379")

# One key namespace per cached endpoint
_CACHE_PREFIXES = ("compress", "compress_stats")


def _generate_cache_key(prefix: str, data: dict) -> str:
    """Generate a cache key from request data."""
    # Sort dict keys for consistent hashing
    sorted_data = json.dumps(data, sort_keys=True)
    hash_value = hashlib.sha256(sorted_data.encode()).hexdigest()[:16]
    return f"{prefix}:{hash_value}"


async def _connect_redis(url: str) -> aioredis.Redis | None:
    """Open the cache connection, or return None when Redis can't be reached."""
    try:
        client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
        await client.ping()
    except (RedisError, OSError, ValueError) as e:
        print(f"⚠ Redis unavailable at {url}: {e}. Caching disabled.")
        return None
    print(f"✓ Caching compressed HTML in Redis at {url} (ttl {CACHE_TTL}s)")
    return client


async def _redis_alive() -> bool:
    if redis_client is None:
        return False
    try:
        await redis_client.ping()
    except RedisError:
        return False
    return True


async def _cache_get(key: str) -> str | None:
    """Look up a cached result. Redis errors count as a miss."""
    if redis_client is None:
        return None
    try:
        return await redis_client.get(key)
    except RedisError as e:
        print(f"⚠ Cache read failed for {key}: {e}")
        return None


async def _cache_set(key: str, value: str) -> None:
    if redis_client is None:
        return
    try:
        await redis_client.setex(key, CACHE_TTL, value)
    except RedisError as e:
        print(f"⚠ Cache write failed for {key}: {e}")


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class CompressOptionsModel(BaseModel):
    """Compression flags shared by all compression endpoints."""

    remove_comments: bool = Field(default=True, description="Remove HTML comments")
    remove_multi_spaces: bool = Field(default=True, description="Collapse runs of whitespace")
    remove_intertag_spaces: bool = Field(default=False, description="Remove whitespace between tags")
    remove_quotes: bool = Field(default=False, description="Remove unnecessary attribute quotes")
    enabled: bool = Field(default=True, description="Set to false to return input unchanged")
    preserve_patterns: list[str] | None = Field(
        default=None, description="Custom regex patterns whose matches are left untouched"
    )


class CompressRequest(CompressOptionsModel):
    """Request body for compression endpoints."""

    html: str = Field(..., description="HTML to compress")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "html": "<div>   <!-- note -->\n  <p class=\"lead\">Hello</p>\n</div>",
                "remove_quotes": True,
            }
        ]
    }}


class CompressResponse(BaseModel):
    """Response body for the /compress endpoint."""

    html: str = Field(..., description="Compressed HTML")


class PreservedBlockResponse(BaseModel):
    """A block that was left untouched."""

    kind: str
    index: int
    text: str


class CompressStatsResponse(BaseModel):
    """Response body for the /compress/stats endpoint."""

    html: str = Field(..., description="Compressed HTML")
    original_length: int = Field(..., description="Original HTML length")
    compressed_length: int = Field(..., description="Compressed HTML length")
    ratio: float = Field(..., description="Compression ratio (0.0-1.0)")
    savings_pct: float = Field(..., description="Percentage of characters saved")
    preserved_blocks: list[PreservedBlockResponse] = Field(
        default_factory=list, description="Blocks preserved during compression"
    )


class BatchItem(BaseModel):
    """A single document in a batch compression request."""

    id: str = Field(..., description="Unique identifier for this item")
    html: str = Field(..., description="HTML to compress")


class BatchRequest(CompressOptionsModel):
    """Request body for batch compression."""

    items: list[BatchItem] = Field(..., description="List of documents to compress")


class BatchItemResponse(BaseModel):
    """A single result in a batch compression response."""

    id: str
    html: str
    original_length: int
    compressed_length: int
    ratio: float
    savings_pct: float


class BatchResponse(BaseModel):
    """Response body for batch compression."""

    items: list[BatchItemResponse]
    total_original_length: int
    total_compressed_length: int
    overall_ratio: float
    overall_savings_pct: float


class HealthResponse(BaseModel):
    """Response body for health check."""

    status: str = "ok"
    version: str
    cache_enabled: bool = False
    redis_connected: bool = False


class CacheStatsResponse(BaseModel):
    """Response body for cache statistics."""

    enabled: bool
    connected: bool
    ttl_seconds: int
    redis_url: str
    keys_count: int | None = None
    memory_used: str | None = None



# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_options(req: CompressOptionsModel) -> CompressorOptions:
    """Build compressor options from a request model.

    Raises:
        HTTPException: 422 when a preserve pattern is not a valid regex.
    """
    try:
        return CompressorOptions(
            remove_comments=req.remove_comments,
            remove_multi_spaces=req.remove_multi_spaces,
            remove_intertag_spaces=req.remove_intertag_spaces,
            remove_quotes=req.remove_quotes,
            enabled=req.enabled,
            preserve_patterns=req.preserve_patterns or (),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _result_to_stats_response(result: CompressionResult) -> CompressStatsResponse:
    """Convert a CompressionResult to the API response model."""
    return CompressStatsResponse(
        html=result.text,
        original_length=result.original_length,
        compressed_length=result.compressed_length,
        ratio=result.ratio,
        savings_pct=result.savings_pct,
        preserved_blocks=[
            PreservedBlockResponse(kind=block.kind, index=block.index, text=block.text)
            for block in result.preserved_blocks
        ],
    )


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Hold the Redis cache connection for the lifetime of the app."""
    global redis_client
    redis_client = await _connect_redis(REDIS_URL)
    try:
        yield
    finally:
        if redis_client is not None:
            await redis_client.aclose()
            redis_client = None


app = FastAPI(
    title="HTML Compressor API",
    description=(
        "REST API for compressing HTML markup. Removes comments and redundant "
        "whitespace while leaving <pre>, <textarea>, <script> and <style> "
        "content, conditional comments and inline event handlers untouched."
    ),
    version=VERSION,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Report the API version and whether the Redis cache answers."""
    return HealthResponse(
        version=VERSION,
        cache_enabled=redis_client is not None,
        redis_connected=await _redis_alive(),
    )


@app.get("/cache/stats", response_model=CacheStatsResponse, tags=["Cache"])
async def cache_stats() -> CacheStatsResponse:
    """Count cached compression results and report Redis memory use."""
    stats = CacheStatsResponse(
        enabled=redis_client is not None,
        connected=False,
        ttl_seconds=CACHE_TTL,
        # Drop credentials from the URL
        redis_url=REDIS_URL.rsplit("@", 1)[-1],
    )
    if not await _redis_alive():
        return stats

    stats.connected = True
    try:
        keys_count = 0
        for prefix in _CACHE_PREFIXES:
            keys_count += len(await redis_client.keys(f"{prefix}:*"))
        info = await redis_client.info("memory")
    except RedisError:
        return stats

    stats.keys_count = keys_count
    stats.memory_used = info.get("used_memory_human", "unknown")
    return stats


@app.post("/compress", response_model=CompressResponse, tags=["Compression"])
async def compress_html(req: CompressRequest) -> CompressResponse:
    """Compress HTML by removing comments and redundant whitespace.

    Results are cached in Redis when it is available.
    """
    options = _build_options(req)
    cache_key = _generate_cache_key("compress", req.model_dump())

    cached = await _cache_get(cache_key)
    if cached is not None:
        return CompressResponse(html=cached)

    result = compress(req.html, options)
    await _cache_set(cache_key, result)
    return CompressResponse(html=result)


@app.post("/compress/stats", response_model=CompressStatsResponse, tags=["Compression"])
async def compress_html_with_stats(req: CompressRequest) -> CompressStatsResponse:
    """Compress HTML and return detailed compression statistics.

    Returns the compressed markup along with the compression ratio,
    savings percentage, and every block that was preserved.
    """
    options = _build_options(req)
    cache_key = _generate_cache_key("compress_stats", req.model_dump())

    cached = await _cache_get(cache_key)
    if cached is not None:
        return CompressStatsResponse.model_validate_json(cached)

    response = _result_to_stats_response(compress_with_stats(req.html, options))
    await _cache_set(cache_key, response.model_dump_json())
    return response


@app.post("/compress/batch", response_model=BatchResponse, tags=["Compression"])
async def compress_batch(req: BatchRequest) -> BatchResponse:
    """Compress several documents in a single request.

    Each item is compressed independently with the same settings.
    Batches are not cached.
    """
    options = _build_options(req)
    items: list[BatchItemResponse] = []
    total_orig = 0
    total_comp = 0

    for item in req.items:
        result = compress_with_stats(item.html, options)
        items.append(BatchItemResponse(
            id=item.id,
            html=result.text,
            original_length=result.original_length,
            compressed_length=result.compressed_length,
            ratio=result.ratio,
            savings_pct=result.savings_pct,
        ))
        total_orig += result.original_length
        total_comp += result.compressed_length

    overall_ratio = total_comp / total_orig if total_orig > 0 else 1.0
    return BatchResponse(
        items=items,
        total_original_length=total_orig,
        total_compressed_length=total_comp,
        overall_ratio=overall_ratio,
        overall_savings_pct=(1.0 - overall_ratio) * 100,
    )

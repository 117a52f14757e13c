"""Text similarity for free-text answers.

Two paths: a remote semantic scorer (Azure OpenAI embeddings or the Hugging
Face sentence-similarity endpoint) and the local lexical heuristic. The remote
path raises ``TransientScoringError`` on any failure and ``similarity`` answers
with the heuristic instead.
"""
from __future__ import annotations
import asyncio, logging, math
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx
from openai import OpenAIError

from . import azure_cfg
from .config import SIMILARITY_TIMEOUT_S, load_config, get_backend
from .errors import TransientScoringError
from .heuristics import lexical_similarity, normalize_text

log = logging.getLogger(__name__)

SimilarityFn = Callable[[str, str], Awaitable[float]]


def _clamp01(x: float) -> float:
    if x < 0.0: return 0.0
    if x > 1.0: return 1.0
    return x


def _as_score(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TransientScoringError(f"non-numeric similarity: {raw!r}")
    val = float(raw)
    if not math.isfinite(val):
        raise TransientScoringError(f"non-finite similarity: {raw!r}")
    return _clamp01(val)


def backend_in_use() -> str:
    cfg = load_config()
    b = get_backend(cfg)
    if b == "azure" and azure_cfg.is_configured():
        return "azure"
    if b == "huggingface" and cfg.get("HUGGINGFACE_API_KEY"):
        return "huggingface"
    return "none"


def cosine(u: Sequence[float], v: Sequence[float]) -> float:
    if len(u) != len(v) or not u:
        raise TransientScoringError("embedding dimensions do not match")
    dot = sum(a * b for a, b in zip(u, v))
    nu = math.sqrt(sum(a * a for a in u))
    nv = math.sqrt(sum(b * b for b in v))
    if nu == 0.0 or nv == 0.0:
        raise TransientScoringError("zero-length embedding")
    return dot / (nu * nv)


async def _similarity_azure(a: str, b: str) -> float:
    s = azure_cfg.settings()
    cli = azure_cfg.async_client()
    try:
        resp = await cli.embeddings.create(model=s.deployment, input=[a, b])
    except OpenAIError as exc:
        raise TransientScoringError(f"azure embeddings failed: {exc}") from exc
    finally:
        await cli.close()
    data = getattr(resp, "data", None) or []
    if len(data) != 2:
        raise TransientScoringError(f"expected 2 embeddings, got {len(data)}")
    return _as_score(cosine(data[0].embedding, data[1].embedding))


async def _similarity_huggingface(a: str, b: str) -> float:
    cfg = load_config()
    headers = {"Authorization": f"Bearer {cfg.get('HUGGINGFACE_API_KEY', '')}"}
    payload = {"inputs": {"source_sentence": a, "sentences": [b]}}
    try:
        async with httpx.AsyncClient(timeout=SIMILARITY_TIMEOUT_S) as client:
            resp = await client.post(cfg["HUGGINGFACE_API_URL"], json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise TransientScoringError(f"huggingface request failed: {exc}") from exc
    if resp.status_code // 100 != 2:
        raise TransientScoringError(f"huggingface returned {resp.status_code}")
    try:
        body = resp.json()
    except ValueError as exc:
        raise TransientScoringError("huggingface returned invalid JSON") from exc
    if isinstance(body, list) and body:
        return _as_score(body[0])
    return _as_score(body)


_BACKENDS: dict[str, SimilarityFn] = {
    "azure": _similarity_azure,
    "huggingface": _similarity_huggingface,
}


async def remote_similarity(a: str, b: str, backend: str) -> float:
    fn = _BACKENDS.get(backend)
    if fn is None:
        raise TransientScoringError(f"no remote backend {backend!r}")
    try:
        return await asyncio.wait_for(fn(a, b), timeout=SIMILARITY_TIMEOUT_S)
    except asyncio.TimeoutError as exc:
        raise TransientScoringError(f"{backend} similarity timed out") from exc


async def similarity(candidate: str, reference: str, backend: Optional[str] = None) -> float:
    """Similarity in [0, 1]; never raises.

    ``backend`` skips the config lookup when the caller already resolved it.
    """
    a = normalize_text(candidate)
    b = normalize_text(reference)
    if backend is None:
        backend = backend_in_use()
    if backend == "none":
        return lexical_similarity(a, b)
    try:
        return await remote_similarity(a, b, backend)
    except TransientScoringError as exc:
        log.warning("similarity fallback (%s): %s", backend, exc)
    except Exception:
        log.exception("similarity backend %s crashed; using lexical fallback", backend)
    return lexical_similarity(a, b)


def bound_similarity(backend: str) -> SimilarityFn:
    """``similarity`` pinned to one backend, for grading a whole attempt."""
    async def _sim(candidate: str, reference: str) -> float:
        return await similarity(candidate, reference, backend)
    return _sim

from __future__ import annotations
import os, json, pathlib


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# similarity at or above this counts as a correct free-text answer
CORRECT_THRESHOLD: float = 0.8

# (min similarity, fraction of marks), checked top-down
PARTIAL_CREDIT_TIERS: tuple[tuple[float, float], ...] = (
    (0.9, 1.0),
    (0.7, 0.75),
    (0.5, 0.5),
    (0.3, 0.25),
)

REAL_NUMBER_DECIMALS: int = 3

SIMILARITY_TIMEOUT_S: float = 8.0
GRADING_CONCURRENCY: int = 8

HUGGINGFACE_API_URL: str = (
    "https://api-inference.huggingface.co/models/sentence-transformers/all-MiniLM-L6-v2"
)

PASS_MARK: int = 40
NEGATIVE_MARKING: dict[str, int] = {"correct": 4, "incorrect": -1}
DISTRIBUTION_BUCKETS: tuple[tuple[str, int], ...] = (
    ("excellent", 90),
    ("good", 80),
    ("fair", 60),
)

RECOMPUTE_SCORE_ON_OVERRIDE: bool = False
EXPORT_ENABLED: bool = True

# // env overrides for staging/ops; defaults stay as above.
CORRECT_THRESHOLD = _env_float("CORRECT_THRESHOLD", CORRECT_THRESHOLD)
SIMILARITY_TIMEOUT_S = _env_float("SIMILARITY_TIMEOUT_S", SIMILARITY_TIMEOUT_S)
GRADING_CONCURRENCY = max(1, _env_int("GRADING_CONCURRENCY", GRADING_CONCURRENCY))
PASS_MARK = _env_int("PASS_MARK", PASS_MARK)
RECOMPUTE_SCORE_ON_OVERRIDE = _env_bool("RECOMPUTE_SCORE_ON_OVERRIDE", RECOMPUTE_SCORE_ON_OVERRIDE)
EXPORT_ENABLED = _env_bool("EXPORT_ENABLED", EXPORT_ENABLED)


def load_config() -> dict:
    cfg = {}
    p = pathlib.Path("config.json")
    if p.exists():
        try: cfg = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError): cfg = {}
    e = os.environ
    if e.get("SIMILARITY_BACKEND"): cfg["SIMILARITY_BACKEND"] = e.get("SIMILARITY_BACKEND")
    if e.get("HUGGINGFACE_API_KEY"): cfg["HUGGINGFACE_API_KEY"] = e.get("HUGGINGFACE_API_KEY")
    if e.get("HUGGINGFACE_API_URL"): cfg["HUGGINGFACE_API_URL"] = e.get("HUGGINGFACE_API_URL")
    cfg.setdefault("HUGGINGFACE_API_URL", HUGGINGFACE_API_URL)
    return cfg


def get_backend(cfg: dict) -> str | None:
    b = (cfg.get("SIMILARITY_BACKEND") or "").lower().strip()
    return b if b in ("azure", "huggingface") else None

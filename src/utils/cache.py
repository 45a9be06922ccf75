# src/utils/cache.py
import hashlib
import json
import logging
import os
import threading
import time
import uuid
from pathlib import Path

from google.api_core import exceptions as gexc

from src.schemas.errors import RateLimitedError, UpstreamTimeoutError
from src.utils.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

_DEBUG_N = int(os.getenv("DEBUG_SAMPLE_N", "5"))
_DEBUG_CNT = 0
_DEBUG_LOCK = threading.Lock()
_MAX = int(os.getenv("GENAI_MAX_CONCURRENCY", "4"))
_SEM = threading.BoundedSemaphore(_MAX)

CACHE_DIR = Path(os.getenv("LLM_CACHE_DIR", ".cache/agents"))
LLM_POLICY = RetryPolicy(max_attempts=3, base_delay=0.8, backoff_factor=1.5, max_delay=10.0, jitter=0.2)


def debug_dump(agent: str, text: str, parsed_json: dict | None, finish_reason=None):
    """write raw model output to logs/raw when DEBUG_GEN=1 (first DEBUG_SAMPLE_N calls only)."""
    global _DEBUG_CNT
    if os.getenv("DEBUG_GEN") != "1":
        return
    with _DEBUG_LOCK:
        if _DEBUG_CNT >= _DEBUG_N:
            return
        _DEBUG_CNT += 1
    os.makedirs("logs/raw", exist_ok=True)
    stamp = int(time.time() * 1000)
    ok = bool(parsed_json)
    path = f"logs/raw/{stamp}_{agent}_ok{int(ok)}_fin{finish_reason or 'NA'}.txt"
    with open(path, "w", encoding="utf-8") as f:
        f.write(text or "")
        if parsed_json is not None:
            f.write("\n\n---PARSED_JSON_PREVIEW---\n")
            f.write(json.dumps(parsed_json, ensure_ascii=False)[:2000])


def _resp_text(resp) -> str:
    if resp is None:
        return ""
    try:
        return resp.text or ""  # works only when finish_reason == STOP and parts exist
    except (ValueError, AttributeError):
        pass
    texts = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) if content else None
        if parts:
            for p in parts:
                t = getattr(p, "text", None)
                if t:
                    texts.append(t)
    if not texts:
        pf = getattr(resp, "prompt_feedback", None)
        logger.warning("[genai-diag] empty response finish=%s block=%s",
                       [getattr(c, "finish_reason", None) for c in (getattr(resp, "candidates", []) or [])],
                       getattr(pf, "block_reason", None) if pf else None)
    return ("\n".join(texts) or "").strip()


def _key(model_name: str, prompt: str, gen_cfg: dict | None, cache_dir: Path) -> Path:
    h = hashlib.sha256()
    h.update(model_name.encode())
    h.update(b"\n")
    h.update(prompt.encode())
    h.update(b"\n")
    if gen_cfg:
        h.update(json.dumps(gen_cfg, sort_keys=True).encode())
    return cache_dir / (h.hexdigest() + ".json")


def _generate(model, prompt: str, generation_config: dict | None):
    try:
        with _SEM:
            return (model.generate_content(prompt, generation_config=generation_config)
                    if generation_config else model.generate_content(prompt))
    except gexc.ResourceExhausted as e:
        raise RateLimitedError("LLM quota exhausted") from e
    except (gexc.DeadlineExceeded, gexc.ServiceUnavailable, gexc.InternalServerError) as e:
        raise UpstreamTimeoutError(f"LLM call failed upstream: {e.__class__.__name__}") from e


def call_with_cache(model, prompt: str, generation_config: dict | None = None,
                    use_cache: bool = True, cache_dir: Path | None = None,
                    policy: RetryPolicy = LLM_POLICY):
    """
    -> {"text", "finish_reason", "cached"}. Cache key = (model, prompt, generation_config).
    Only non-empty responses are cached; files are written atomically.
    """
    cache_dir = cache_dir or CACHE_DIR
    label = getattr(model, "model_name", None) or getattr(model, "_cache_model_label", None) or "unknown"
    p = _key(label, prompt, generation_config, cache_dir)
    if use_cache and p.exists():
        data = json.loads(p.read_text(encoding="utf-8"))
        data["cached"] = True
        return data

    resp = retry_call(lambda: _generate(model, prompt, generation_config), policy, label=f"genai {label}")
    text = (_resp_text(resp) or "").strip()
    finish = getattr(resp.candidates[0], "finish_reason", None) if getattr(resp, "candidates", None) else None
    data = {"text": text, "finish_reason": str(finish) if finish is not None else None, "cached": False}
    if use_cache and text:
        cache_dir.mkdir(parents=True, exist_ok=True)
        tmp = Path(str(p) + f".tmp.{uuid.uuid4().hex}")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, p)
    return data

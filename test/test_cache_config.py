from types import SimpleNamespace

import pytest
from google.api_core import exceptions as gexc

from src.config.settings import load_cfg
from src.schemas.errors import RateLimitedError
from src.utils.cache import call_with_cache
from src.utils.retry import RetryPolicy

NO_WAIT = RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter=0.0)


class FakeModel:
    model_name = "models/fake"

    def __init__(self, texts=(), exc=None):
        self.texts = list(texts)
        self.exc = exc
        self.calls = 0

    def generate_content(self, prompt, generation_config=None):
        self.calls += 1
        if self.exc:
            raise self.exc
        return SimpleNamespace(text=self.texts.pop(0), candidates=[SimpleNamespace(finish_reason="STOP")])


def test_second_call_is_served_from_disk(tmp_path):
    m = FakeModel(texts=['{"a": 1}'])
    first = call_with_cache(m, "p", {"temperature": 0.2}, cache_dir=tmp_path, policy=NO_WAIT)
    second = call_with_cache(m, "p", {"temperature": 0.2}, cache_dir=tmp_path, policy=NO_WAIT)
    assert first["text"] == second["text"] == '{"a": 1}'
    assert (first["cached"], second["cached"]) == (False, True)
    assert m.calls == 1
    assert not list(tmp_path.glob("*.tmp.*"))


def test_empty_responses_are_not_cached(tmp_path):
    m = FakeModel(texts=["", "ok"])
    assert call_with_cache(m, "p", cache_dir=tmp_path, policy=NO_WAIT)["text"] == ""
    assert call_with_cache(m, "p", cache_dir=tmp_path, policy=NO_WAIT)["text"] == "ok"
    assert m.calls == 2


def test_quota_errors_become_rate_limited_after_retries(tmp_path):
    m = FakeModel(exc=gexc.ResourceExhausted("quota"))
    with pytest.raises(RateLimitedError):
        call_with_cache(m, "p", cache_dir=tmp_path, policy=NO_WAIT)
    assert m.calls == 2


def test_load_cfg_merges_yaml_and_env(tmp_path, monkeypatch):
    p = tmp_path / "app.yaml"
    p.write_text("seed: 7\nselection:\n  top_n: 3\nllm:\n  timeout_s: 12\n", encoding="utf-8")
    monkeypatch.setenv("GEMINI_MODEL", "models/other")
    monkeypatch.delenv("APP_SEED", raising=False)
    monkeypatch.delenv("LLM_TIMEOUT_S", raising=False)
    monkeypatch.delenv("GENAI_MAX_CONCURRENCY", raising=False)
    cfg = load_cfg(str(p))
    assert cfg.seed == 7
    assert cfg.selection.top_n == 3
    assert cfg.llm.timeout_s == 12
    assert cfg.llm.model == "models/other"
    assert cfg.retry.max_attempts == 3
    assert load_cfg(str(p), cli_seed=1).seed == 1


def test_load_cfg_rejects_bad_values(tmp_path):
    p = tmp_path / "app.yaml"
    p.write_text("selection:\n  top_n: many\n", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_cfg(str(p))

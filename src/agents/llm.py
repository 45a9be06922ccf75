# src/agents/llm.py
"""
The LLM as a capability: complete(prompt) -> text, may raise or hang.
Scoring code only ever sees this interface; GeminiClient is the production backing.
"""
import os
from typing import Protocol

import google.generativeai as genai
from dotenv import load_dotenv

from src.config.settings import LLMCfg
from src.utils.cache import call_with_cache


class LLMClient(Protocol):
    model_name: str

    def complete(self, prompt: str) -> str:
        ...


def _model(name: str) -> genai.GenerativeModel:
    m = genai.GenerativeModel(model_name=name)
    # label for the cache key without touching read-only props
    try:
        setattr(m, "_cache_model_label", name)
    except AttributeError:
        pass
    return m


class GeminiClient:
    def __init__(self, cfg: LLMCfg | None = None, api_key: str | None = None, use_cache: bool = True):
        load_dotenv()
        self.cfg = cfg or LLMCfg()
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY not found in environment / .env file.")
        genai.configure(api_key=api_key)
        self.model_name = self.cfg.model
        self.use_cache = use_cache
        self._model = _model(self.model_name)
        self.gen_cfg = {
            "temperature": float(self.cfg.temperature),
            "max_output_tokens": int(self.cfg.max_output_tokens),
            "response_mime_type": "application/json",
        }

    def complete(self, prompt: str) -> str:
        data = call_with_cache(self._model, prompt, generation_config=self.gen_cfg, use_cache=self.use_cache)
        return data["text"]

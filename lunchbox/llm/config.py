from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("LUNCHBOX_MODEL", "llama-3.3-70b-versatile")
    light_model: str = os.getenv("LUNCHBOX_LIGHT_MODEL", "llama-3.1-8b-instant")
    timeout: float = 30.0
    max_tokens: int = 4096
    temperature: float = 0.5
    enabled: bool = True


@dataclass(frozen=True)
class ProxyConfig:
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openrouter_api_key: str = os.getenv("OPENROUTER_API_KEY", "")
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_referer: str = "https://lunch-decider.app"
    openrouter_title: str = "Lunch Decider"
    menu_model: str = os.getenv("LUNCHBOX_MENU_MODEL", "gemini-2.0-flash")
    timeout: float = 30.0


DEFAULT_LLM_CONFIG = LLMConfig()
DEFAULT_PROXY_CONFIG = ProxyConfig()

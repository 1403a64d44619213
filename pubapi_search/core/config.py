"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# Persisted index (JSON array of documents) loaded by the API at startup
INDEX_PATH: str = os.getenv("INDEX_PATH", "").strip()

# Concurrency ceilings (indexer embeddings, verification judgments, browser searches)
MAX_CONCURRENCY: int = _env_int("MAX_CONCURRENCY", 8)
BROWSER_MAX_CONCURRENCY: int = _env_int("BROWSER_MAX_CONCURRENCY", 1)

# Search defaults
MAX_NUM_RESULTS: int = _env_int("MAX_NUM_RESULTS", 5)
USE_VERIFICATION: bool = _env_bool("USE_VERIFICATION", True)
# Keep a candidate when its relevance judgment fails (False drops it instead)
VERIFICATION_FAIL_OPEN: bool = _env_bool("VERIFICATION_FAIL_OPEN", True)

# Agent loop
AGENT_MAX_STEPS: int = _env_int("AGENT_MAX_STEPS", 6)
AGENT_MAX_RETRIES: int = _env_int("AGENT_MAX_RETRIES", 2)
AGENT_MAX_TOKENS: int = 512
# Characters of a visited page shown to the model
PAGE_PREVIEW_CHARS: int = 4000

# Indexing: number of spec paths included in the embedding text / summary prompt
SAMPLE_PATHS: int = 5

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0
FETCH_TIMEOUT: float = 15.0

# OpenAI (primary embeddings + LLM)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o").strip() or "gpt-4o"
)
OPENAI_EMBED_MODEL: str = (
    os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-large").strip()
    or "text-embedding-3-large"
)

# Hugging Face (fallback when OPENAI_API_KEY is not set)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)

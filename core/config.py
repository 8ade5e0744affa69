# 环境变量、常量

import os

from dotenv import load_dotenv

load_dotenv()

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

VOLC_URL = os.getenv(
    "VOLCENGINE_API_ENDPOINT",
    "https://ark.cn-beijing.volces.com/api/v3/chat/completions",
)
VOLC_MODEL = os.getenv("VOLCENGINE_MODEL", "doubao-seed-1-6-250615")
VOLC_REASONING_EFFORT = os.getenv("VOLCENGINE_REASONING_EFFORT", "minimal")

LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", "60"))
LLM_RETRY_MAX_ATTEMPTS = int(os.getenv("LLM_RETRY_MAX_ATTEMPTS", "3"))
LLM_RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_BASE_DELAY", "1.0"))

CHAT_MAX_TOKENS = 1024
SUMMARY_MAX_TOKENS = 2000

API_BASE = os.getenv("SPARKLOG_API_BASE", "http://localhost:8000")

_PROVIDER_ALIASES = {
    "gemini": "gemini",
    "google": "gemini",
    "genai": "gemini",
    "gemini_legacy": "gemini_legacy",
    "generativeai": "gemini_legacy",
    "volcengine": "volcengine",
    "volc": "volcengine",
    "ark": "volcengine",
    "doubao": "volcengine",
}

# 各 provider 需要的密钥变量
PROVIDER_KEY_ENV = {
    "gemini": "GEMINI_API_KEY",
    "gemini_legacy": "GEMINI_API_KEY",
    "volcengine": "VOLCENGINE_API_KEY",
}


# 密钥与运行模式每次请求时读取，缺失时由路由返回 500 而不是启动失败
def gemini_api_key() -> str:
    return os.getenv("GEMINI_API_KEY", "")


def volc_api_key() -> str:
    return os.getenv("VOLCENGINE_API_KEY", "")


def app_env() -> str:
    return (os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production").strip().lower()


def is_development() -> bool:
    return app_env() == "development"


def is_production() -> bool:
    return app_env() == "production"


def llm_provider() -> str:
    """
    选择 provider：
      - LLM_PROVIDER 显式指定（支持别名）
      - 否则有 GEMINI_API_KEY → gemini
      - 否则有 VOLCENGINE_API_KEY → volcengine
      - 都没有 → gemini（由路由报缺少密钥）
    """
    explicit = os.getenv("LLM_PROVIDER")
    if explicit and explicit.strip():
        normalized = _PROVIDER_ALIASES.get(explicit.strip().lower())
        if not normalized:
            raise RuntimeError(f"未知的 LLM_PROVIDER: {explicit}")
        return normalized
    if gemini_api_key():
        return "gemini"
    if volc_api_key():
        return "volcengine"
    return "gemini"


def missing_credential(provider: str) -> str | None:
    """返回缺失的环境变量名；密钥齐全时返回 None。"""
    env_name = PROVIDER_KEY_ENV[provider]
    if not os.getenv(env_name, "").strip():
        return env_name
    return None

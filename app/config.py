from pydantic import BaseModel
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    # 기능 플래그: 꺼져 있으면 경로 생성 요청은 외부 호출 없이 거절
    ai_routes_enabled: bool = _env_flag("AI_ROUTES_ENABLED")
    http_timeout_s: float = float(os.getenv("HTTP_TIMEOUT_S", "8.0"))
    http_retries: int = int(os.getenv("HTTP_RETRIES", "2"))
    pipeline_timeout_s: float = float(os.getenv("PIPELINE_TIMEOUT_S", "45.0"))
    max_candidates: int = int(os.getenv("MAX_CANDIDATES", "20"))
    langsmith_project: str = os.getenv("LANGSMITH_PROJECT", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()

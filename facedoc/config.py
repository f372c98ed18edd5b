import os

from pydantic import BaseModel, ConfigDict

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class Settings(BaseModel):
    """Runtime configuration, loaded once and immutable afterwards."""

    model_config = ConfigDict(frozen=True)

    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_base: str = DEFAULT_API_BASE
    timeout_seconds: float = 60.0
    temperature: float = 0.9
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 4096
    rate_limit_per_ip: str = "10/minute"

    @classmethod
    def from_env(cls) -> "Settings":
        # Call load_dotenv() before this if values live in a .env file.
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip(),
            gemini_api_base=os.getenv("GEMINI_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            timeout_seconds=float(os.getenv("GEMINI_TIMEOUT_SECONDS", "60")),
            temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.9")),
            top_k=int(os.getenv("GEMINI_TOP_K", "40")),
            top_p=float(os.getenv("GEMINI_TOP_P", "0.95")),
            max_output_tokens=int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "4096")),
            rate_limit_per_ip=os.getenv("RATE_LIMIT_PER_IP", "10/minute"),
        )

    def masked_api_key(self) -> str:
        if not self.gemini_api_key:
            return "없음"
        return self.gemini_api_key[:4] + "***"

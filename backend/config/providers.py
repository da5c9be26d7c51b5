"""
AI Provider Configuration

Builds per-provider connection settings from environment variables.
Only providers with credentials (or an endpoint, for local models) are
considered configured. Nothing here is persisted.
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


OPENAI_COMPATIBLE = "openai_compatible"
ANTHROPIC = "anthropic"
GEMINI = "gemini"


@dataclass
class ProviderConfig:
    """Connection settings for one provider"""

    name: str
    kind: str
    api_key: str = ""
    model: Optional[str] = None
    endpoint: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def is_configured(self) -> bool:
        if self.name == "local":
            return bool(self.endpoint)
        return bool(self.api_key)

    def safe_view(self) -> dict:
        """Representation without secrets, for the settings UI"""
        return {
            "kind": self.kind,
            "apiKey": "***" if self.api_key else "",
            "model": self.model,
            "endpoint": self.endpoint,
            "configured": self.is_configured(),
        }


# Default endpoints/models per provider
PROVIDER_DEFAULTS = {
    "openai": (OPENAI_COMPATIBLE, "https://api.openai.com/v1", "gpt-4o-mini"),
    "groq": (OPENAI_COMPATIBLE, "https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
    "deepseek": (OPENAI_COMPATIBLE, "https://api.deepseek.com/v1", "deepseek-chat"),
    "local": (OPENAI_COMPATIBLE, None, "llama3"),
    "anthropic": (ANTHROPIC, "https://api.anthropic.com/v1", "claude-3-5-haiku-latest"),
    "gemini": (GEMINI, "https://generativelanguage.googleapis.com/v1beta", "gemini-1.5-flash"),
}


def load_provider_configs(environ: Optional[Dict[str, str]] = None) -> Dict[str, ProviderConfig]:
    """
    Build provider configurations from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Dict of provider name -> ProviderConfig
    """
    env = os.environ if environ is None else environ

    keys = {
        "openai": env.get("OPENAI_API_KEY", ""),
        "anthropic": env.get("ANTHROPIC_API_KEY", ""),
        "gemini": env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY", ""),
        "groq": env.get("GROQ_API_KEY", ""),
        "deepseek": env.get("DEEPSEEK_API_KEY", ""),
        "local": env.get("LOCAL_LLM_API_KEY", ""),
    }

    configs = {}
    for name, (kind, endpoint, default_model) in PROVIDER_DEFAULTS.items():
        model = env.get(f"{name.upper()}_MODEL") or (env.get("LOCAL_LLM_MODEL") if name == "local" else None)
        if name == "local":
            endpoint = env.get("LOCAL_LLM_ENDPOINT") or env.get("OLLAMA_API_BASE") or None
        configs[name] = ProviderConfig(
            name=name,
            kind=kind,
            api_key=keys[name] or "",
            model=model or default_model,
            endpoint=endpoint,
        )

    configured = [name for name, cfg in configs.items() if cfg.is_configured()]
    logger.info(f"AI providers configured: {', '.join(configured) if configured else 'none'}")
    return configs

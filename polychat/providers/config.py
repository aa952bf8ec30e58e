from typing import Any, Dict

# Provider name -> how to build it. "type" selects the adapter variant and
# "credential" names the Settings field holding its API key.
PROVIDER_CONFIGS: Dict[str, Dict[str, Any]] = {
    "openai": {
        "type": "openai",
        "display_name": "OpenAI",
        "credential": "OPENAI_API_KEY",
        "models": ["gpt-5", "gpt-4", "gpt-4-turbo", "gpt-3.5-turbo"],
        "generation_params": {
            "temperature": 0.7,
            "max_tokens": 2000,
        },
    },
    "gemini": {
        "type": "gemini",
        "display_name": "Google Gemini",
        "credential": "GEMINI_API_KEY",
        "models": [
            "gemini-2.5-pro",
            "gemini-2.5-flash",
            "gemini-1.5-pro",
            "gemini-1.5-flash",
        ],
        "default_model": "gemini-2.5-flash",
        "generation_params": {},
    },
}

from __future__ import annotations

import logging
import subprocess
from typing import Optional, Protocol

import google.generativeai as genai

from .config import Settings
from .errors import InferenceError

logger = logging.getLogger(__name__)


class ReplyGenerator(Protocol):
    name: str

    def generate(self, system_instruction: str, prompt: str) -> str: ...


class GeminiGenerator:
    name = "gemini"

    def __init__(self, api_key: Optional[str], model_name: str) -> None:
        self.api_key = api_key
        self.model_name = model_name

    def generate(self, system_instruction: str, prompt: str) -> str:
        if not self.api_key:
            raise InferenceError("Missing GEMINI_API_KEY. Set environment variable GEMINI_API_KEY.")
        logger.debug("Gemini request model=%s prompt_chars=%d", self.model_name, len(prompt))
        try:
            genai.configure(api_key=self.api_key)
            model = genai.GenerativeModel(self.model_name, system_instruction=system_instruction)
            response = model.generate_content(prompt)
            return response.text
        except Exception as e:
            raise InferenceError(f"Gemini call failed: {e}") from e


class OllamaGenerator:
    """Runs a local model through the ``ollama run`` CLI."""

    name = "ollama"

    def __init__(self, executable: str, model_name: str) -> None:
        self.executable = executable
        self.model_name = model_name

    def generate(self, system_instruction: str, prompt: str) -> str:
        # the CLI has no separate system slot
        full_prompt = f"{system_instruction}\n\n{prompt}"
        logger.debug("Ollama request model=%s prompt_chars=%d", self.model_name, len(full_prompt))
        try:
            r = subprocess.run(
                [self.executable, "run", self.model_name, full_prompt],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="ignore",
            )
        except OSError as e:
            raise InferenceError(f"Ollama local call failed: {e}") from e
        if r.returncode != 0:
            raise InferenceError(r.stderr.strip() or "ollama failed")
        return r.stdout.strip()


def build_generator(settings: Settings) -> ReplyGenerator:
    if settings.llm_backend == "gemini":
        return GeminiGenerator(settings.gemini_api_key, settings.gemini_model)
    if settings.llm_backend == "ollama":
        return OllamaGenerator(settings.ollama_path, settings.ollama_model)
    raise ValueError(f"Unsupported LLM_BACKEND: {settings.llm_backend}")

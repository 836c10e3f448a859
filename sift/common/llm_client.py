"""
Provider-agnostic LLM client for Sift.

Supports Google Gemini, Anthropic and OpenAI behind one text-generation
interface, with optional inline media (photos of notices, scanned letters).
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger("sift.common.llm_client")


@dataclass
class MediaPart:
    """Raw attachment bytes handed to the model alongside the prompt"""
    data: bytes
    mime_type: str

    @property
    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "google",
        model: str = "",
        google_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "google").lower()
        self.model = model
        self._client = None

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
                self._google_models = {}  # Cache models by (system prompt, json mode)
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        models = {
            "google": llm_config.google_model,
            "anthropic": llm_config.anthropic_model,
            "openai": llm_config.openai_model,
        }
        return cls(
            provider=llm_config.provider,
            model=models.get((llm_config.provider or "").lower(), ""),
            google_api_key=llm_config.google_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            openai_api_key=llm_config.openai_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        media: Sequence[MediaPart] = (),
        json_output: bool = False,
        max_tokens: int = 2048,
        timeout: float = 60.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "google":
            cache_key = (system or "", json_output)
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]

            generation_config = {"max_output_tokens": max_tokens}
            if json_output:
                generation_config["response_mime_type"] = "application/json"

            parts = [prompt]
            parts.extend({"mime_type": m.mime_type, "data": m.data} for m in media)
            response = model.generate_content(
                parts,
                generation_config=generation_config,
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        if self.provider == "anthropic":
            content = [
                {
                    "type": "document" if m.mime_type == "application/pdf" else "image",
                    "source": {"type": "base64", "media_type": m.mime_type, "data": m.b64},
                }
                for m in media
            ]
            content.append({"type": "text", "text": prompt})
            kwargs = {}
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": content}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            content = [{"type": "text", "text": prompt}]
            content.extend(
                {"type": "image_url", "image_url": {"url": f"data:{m.mime_type};base64,{m.b64}"}}
                for m in media
            )
            messages.append({"role": "user", "content": content})
            kwargs = {}
            if json_output:
                kwargs["response_format"] = {"type": "json_object"}
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

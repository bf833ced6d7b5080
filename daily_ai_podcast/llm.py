from __future__ import annotations

import json
import logging
import os
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import OracleError, OracleResponseError


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class RelevanceResponse(BaseModel):
    """Pass A answer: ids of the batch that are genuinely about AI."""

    model_config = ConfigDict(extra="ignore", strict=True)

    aiRelatedIds: List[str]


class SelectionResponse(BaseModel):
    """Pass B answer: ranked ids for the episode."""

    model_config = ConfigDict(extra="ignore", strict=True)

    selectedIds: List[str]


def parse_oracle_json(raw: str, schema: Type[M]) -> M:
    """Validate an LLM JSON answer; anything off-schema becomes OracleResponseError."""
    text = (raw or "").strip()
    if not text:
        raise OracleResponseError("Empty response")
    if not text.endswith("}"):
        logger.warning("Oracle response looks truncated", extra={"length": len(text), "tail": text[-100:]})
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise OracleResponseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise OracleResponseError(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise OracleResponseError(f"Response does not match {schema.__name__}: {e}") from e


def _get_openai_client(api_key: Optional[str]):
    if not api_key:
        return None
    from openai import OpenAI

    return OpenAI(api_key=api_key)


class ChatOracle:
    """Thin wrapper over the OpenAI chat API returning plain strings.

    Any SDK failure or an empty answer is raised as OracleError.
    """

    def __init__(self, client: Any, model: str = "gpt-4o-mini") -> None:
        self.client = client
        self.model = model

    def complete(
        self,
        system: str,
        user: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> str:
        kwargs: dict = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            resp = self.client.chat.completions.create(**kwargs)
        except Exception as e:  # noqa: BLE001
            raise OracleError(f"{type(e).__name__}: {e}") from e
        out = resp.choices[0].message.content if resp and resp.choices else None
        if not out or not out.strip():
            raise OracleError("No content returned from the model")
        logger.debug("Oracle response", extra={"length": len(out), "json_mode": json_mode})
        return out.strip()


def make_chat_oracle(model: str, api_key_env: str = "OPENAI_API_KEY") -> Optional[ChatOracle]:
    """Build the oracle from the environment; None when the key is not configured."""
    client = _get_openai_client(os.environ.get(api_key_env))
    if client is None:
        logger.info("OpenAI client not available; api key missing", extra={"api_key_env": api_key_env})
        return None
    return ChatOracle(client, model=model)

from __future__ import annotations

import json
import re
from typing import Any

from backend.config import get_settings
from backend.utils.auth_aws import bedrock_runtime_client

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _bedrock_client(client: Any | None = None):
    if client:
        return client
    return bedrock_runtime_client()


def _load_json_body(response: dict[str, Any]) -> dict[str, Any]:
    body = response.get("body")
    if hasattr(body, "read"):
        raw = body.read()
    elif isinstance(body, (bytes, bytearray)):
        raw = body
    elif body is None:
        return {}
    else:
        raw = str(body).encode("utf-8")
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return {}
    try:
        content = json.loads(text)
    except json.JSONDecodeError:
        return {"outputText": text}
    return content if isinstance(content, dict) else {}


def _model_uses_messages(model_id: str) -> bool:
    model_id = (model_id or "").lower()
    return "claude-3" in model_id or "claude-sonnet-4" in model_id or "claude-opus-4" in model_id


def _invoke_text_model(
    system_prompt: str,
    prompt: str,
    max_tokens: int,
    temperature: float,
    client: Any | None = None,
) -> dict[str, Any]:
    settings = get_settings()
    model_id = settings.bedrock_model_id
    if _model_uses_messages(model_id):
        payload = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": prompt,
                        }
                    ],
                }
            ],
        }
    else:
        payload = {
            "prompt": f"\n\nHuman: {system_prompt}\n\n{prompt}\n\nAssistant:",
            "max_tokens_to_sample": max_tokens,
            "temperature": temperature,
        }

    response = _bedrock_client(client).invoke_model(
        modelId=model_id,
        contentType="application/json",
        accept="application/json",
        body=json.dumps(payload).encode("utf-8"),
    )
    return _load_json_body(response)


def _extract_text_from_content(content: dict[str, Any]) -> str:
    if not isinstance(content, dict):
        return ""
    for key in ("outputText", "completion", "response"):
        value = content.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    message_content = content.get("content")
    if isinstance(message_content, list):
        pieces: list[str] = []
        for item in message_content:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            if isinstance(text, str) and text.strip():
                pieces.append(text.strip())
        if pieces:
            return "\n".join(pieces)
    return ""


def strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text.strip())
    return match.group(1) if match else text.strip()


def complete_json(system_prompt: str, prompt: str, temperature: float = 0.3, client: Any | None = None) -> str:
    """Ask the configured model for a JSON answer and return its raw text.

    Returns an empty string when the model produced no content. Bedrock errors
    (``BotoCoreError``/``ClientError``) propagate to the caller.
    """
    content = _invoke_text_model(
        system_prompt,
        prompt,
        max_tokens=get_settings().bedrock_max_tokens,
        temperature=temperature,
        client=client,
    )
    return strip_code_fence(_extract_text_from_content(content))

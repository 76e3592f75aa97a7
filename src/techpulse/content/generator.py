"""AI content generation supporting Anthropic and OpenAI."""

from __future__ import annotations

import json
import logging
import re

from techpulse.content.prompts import SYSTEM_PROMPTS, build_user_prompt
from techpulse.core.models import AIContentRequest, AIProvider, AppConfig

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def complete(system_prompt: str, user_prompt: str, config: AppConfig) -> str:
    """Send one system + user exchange to the configured provider."""
    if config.ai.provider == AIProvider.ANTHROPIC:
        return _complete_anthropic(system_prompt, user_prompt, config)
    elif config.ai.provider == AIProvider.OPENAI:
        return _complete_openai(system_prompt, user_prompt, config)
    else:
        raise ValueError(f"Unknown AI provider: {config.ai.provider}")


def _complete_anthropic(system_prompt: str, user_prompt: str, config: AppConfig) -> str:
    import anthropic

    client = anthropic.Anthropic()  # uses ANTHROPIC_API_KEY env var
    message = client.messages.create(
        model=config.ai.model,
        max_tokens=config.ai.max_tokens,
        temperature=config.ai.temperature,
        system=system_prompt,
        messages=[{"role": "user", "content": user_prompt}],
    )
    return message.content[0].text


def _complete_openai(system_prompt: str, user_prompt: str, config: AppConfig) -> str:
    import openai

    client = openai.OpenAI()  # uses OPENAI_API_KEY env var
    response = client.chat.completions.create(
        model=config.ai.model,
        max_tokens=config.ai.max_tokens,
        temperature=config.ai.temperature,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    )
    return response.choices[0].message.content or ""


def parse_response(text: str) -> dict:
    """Decode the JSON object in a model reply, fenced or bare.

    Anything that does not decode to an object comes back as ``{"raw": text}``.
    """
    match = _FENCED_JSON.search(text)
    candidate = match.group(1) if match else text
    try:
        data = json.loads(candidate.strip())
    except json.JSONDecodeError:
        logger.warning("AI reply was not valid JSON (%d chars)", len(text))
        return {"raw": text}
    return data if isinstance(data, dict) else {"raw": text}


def generate_content(req: AIContentRequest, config: AppConfig) -> dict:
    """Run one publisher AI request and return the decoded reply."""
    user_prompt = build_user_prompt(req)
    logger.info("AI content request: type=%s provider=%s", req.type.value, config.ai.provider.value)
    reply = complete(SYSTEM_PROMPTS[req.type], user_prompt, config)
    if not reply:
        raise RuntimeError("No response from AI provider")
    return parse_response(reply)

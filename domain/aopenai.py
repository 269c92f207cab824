import json
import os
from typing import Any

import openai


MAX_TOKENS = 3000
TEMPERATURE = 0.1
DEFAULT_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")


async def json_chat(
    system: str,
    msg: str,
    *,
    openai_client: openai.AsyncClient,
    model: str | None = None,
    max_tokens: int = MAX_TOKENS,
) -> dict[str, Any]:
    """One-shot chat in JSON mode. Raises ValueError on an empty or non-JSON answer."""
    model = DEFAULT_MODEL if model is None else model
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": msg},
        ],
        response_format={"type": "json_object"},
        temperature=TEMPERATURE,
        max_tokens=max_tokens,
    )
    ans = resp.choices[0].message.content
    if not ans:
        raise ValueError("No response.")
    data = json.loads(ans)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}.")
    return data

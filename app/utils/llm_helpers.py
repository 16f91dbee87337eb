"""Utility functions for LLM invocations with timeout handling."""

import asyncio
import json
import logging
import re
from typing import List, Optional, Type, TypeVar

from langchain_core.messages import BaseMessage, HumanMessage
from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel, ValidationError

from app.config.settings import settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DiagnosisGenerationError(Exception):
    """The model failed, timed out, or never produced a valid structured answer."""


JSON_REPAIR_PROMPT = """The previous output did not match the required JSON schema.
Output ONLY a JSON object matching the schema below and nothing else.

Schema:
{schema}

Previous output:
{previous}
"""


def strip_md_fences(text: str) -> str:
    """Strip markdown code fences that the LLM sometimes wraps JSON in.

    Handles patterns like:
        ```json\\n{...}\\n```
        ```\\n{...}\\n```
    """
    stripped = text.strip()
    match = re.match(r"^```(?:json)?\s*\n?(.*?)\n?```\s*$", stripped, re.DOTALL)
    if match:
        return match.group(1).strip()
    return stripped


def response_text(response) -> str:
    content = getattr(response, "content", response)
    return content if isinstance(content, str) else str(content)


async def invoke_llm_with_timeout(
    llm: BaseChatModel,
    messages: List[BaseMessage],
    timeout: Optional[float] = None,
):
    """
    Invoke an LLM with timeout protection.

    Args:
        llm: The language model to invoke
        messages: List of messages to send to the LLM
        timeout: Timeout in seconds (defaults to settings.llm_invoke_timeout)

    Returns:
        LLM response

    Raises:
        DiagnosisGenerationError: If the call times out or fails
    """
    if timeout is None:
        timeout = settings.llm_invoke_timeout

    logger.info(f"Invoking LLM with timeout: {timeout}s")

    try:
        response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
        logger.info("LLM responded successfully")
        return response

    except asyncio.TimeoutError as e:
        logger.error(f"LLM invocation timed out after {timeout}s")
        raise DiagnosisGenerationError(f"Model timed out after {timeout}s") from e

    except Exception as e:
        logger.error(f"LLM invocation failed: {e}", exc_info=True)
        raise DiagnosisGenerationError(f"Model call failed: {e}") from e


def parse_structured(text: str, schema: Type[ModelT]) -> ModelT:
    """Parse a JSON answer into ``schema``; raises ValueError if it doesn't fit."""
    try:
        data = json.loads(strip_md_fences(text))
        return schema.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Response does not match {schema.__name__}: {e}") from e


async def invoke_structured(
    llm: BaseChatModel,
    messages: List[BaseMessage],
    schema: Type[ModelT],
) -> ModelT:
    """Invoke ``llm`` and validate its JSON answer, with one repair attempt."""
    raw = response_text(await invoke_llm_with_timeout(llm, messages))

    try:
        return parse_structured(raw, schema)
    except ValueError as first_error:
        logger.warning(f"Structured output invalid, requesting repair: {first_error}")

    repair_prompt = JSON_REPAIR_PROMPT.format(
        schema=json.dumps(schema.model_json_schema(), indent=2),
        previous=raw,
    )
    raw = response_text(
        await invoke_llm_with_timeout(llm, [HumanMessage(content=repair_prompt)])
    )

    try:
        return parse_structured(raw, schema)
    except ValueError as e:
        logger.error(f"Repair attempt still invalid: {e}")
        raise DiagnosisGenerationError(
            f"Model did not return a valid {schema.__name__}"
        ) from e

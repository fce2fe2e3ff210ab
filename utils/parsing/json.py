"""
JSON extraction and repair for Claude responses.

Claude wraps its JSON in markdown fences, surrounds it with prose, and
sometimes truncates it mid-array. The functions here locate the payload,
run it through layered parsers and, as a last resort, salvage every
complete recommendation object that survived.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import json5
import demjson3

from config import settings
from utils.errors import MalformedResponseError

logger = logging.getLogger(__name__)

CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

OPENERS = {"{": "}", "[": "]"}
CLOSERS = {"}", "]"}


def find_balanced_span(text: str, start: int) -> Optional[int]:
    """
    Find the end of the bracketed value opening at text[start].

    Tracks string literals (with backslash escapes) so that braces inside
    titles or descriptions do not affect nesting depth.

    Returns:
        Index one past the matching close bracket, or None if it never closes
    """
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        char = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1
            if depth == 0:
                return i + 1

    return None


def extract_json_text(response_text: str) -> str:
    """
    Locate the JSON payload inside free-form LLM output.

    Strategy 1: contents of the first ``` or ```json fenced block.
    Strategy 2: bracket-matched span starting at the first { or [.
    A span that never closes (truncated output) runs to the end of the text.
    """
    code_block = CODE_BLOCK_PATTERN.search(response_text)
    if code_block:
        logger.debug("Extracted JSON from code block")
        return code_block.group(1)

    starts = [i for i in (response_text.find("{"), response_text.find("[")) if i >= 0]
    if not starts:
        return response_text.strip()

    start = min(starts)
    end = find_balanced_span(response_text, start)
    if end is None:
        logger.debug("JSON span never closes, using remainder of response")
        return response_text[start:]

    logger.debug(f"Extracted JSON by brace matching, length: {end - start}")
    return response_text[start:end]


def repair_and_parse_json(response_text: str) -> Any:
    """
    Multi-layered JSON parsing with auto-repair capabilities.

    Attempts to parse JSON through multiple strategies:
    1. Standard json.loads()
    2. Clean common issues (trailing commas, comments)
    3. json5 parser (tolerates comments and trailing commas)
    4. demjson3 parser (auto-repairs many errors)

    Args:
        response_text: JSON text extracted from Claude's response

    Returns:
        Parsed JSON value (dict or list)

    Raises:
        MalformedResponseError: If all parsing attempts fail
    """
    errors = []

    # Layer 1: Try standard JSON parser first
    try:
        return json.loads(response_text)
    except json.JSONDecodeError as e:
        errors.append(f"Standard JSON: {str(e)}")
        logger.debug(f"❌ Layer 1 failed: {str(e)}")

    # Layer 2: Clean common Claude JSON mistakes
    try:
        cleaned = response_text

        # Remove trailing commas before closing braces/brackets
        cleaned = re.sub(r",(\s*[}\]])", r"\1", cleaned)

        # Remove single-line comments (// ...) but not the // in URLs
        cleaned = re.sub(r"(?<![:\"])//[^\n]*", "", cleaned)

        # Remove multi-line comments (/* ... */)
        cleaned = re.sub(r"/\*.*?\*/", "", cleaned, flags=re.DOTALL)

        result = json.loads(cleaned)
        logger.info("✅ Layer 2: Cleaned JSON parsing succeeded")
        return result
    except json.JSONDecodeError as e:
        errors.append(f"Cleaned JSON: {str(e)}")
        logger.debug(f"❌ Layer 2 failed: {str(e)}")

    # Layer 3: Try json5 (tolerates trailing commas and comments)
    try:
        result = json5.loads(response_text)
        logger.info("✅ Layer 3: JSON5 parsing succeeded")
        return result
    except Exception as e:
        errors.append(f"JSON5: {str(e)}")
        logger.debug(f"❌ Layer 3 failed: {str(e)}")

    # Layer 4: Try demjson3 (auto-repairs many JSON errors)
    try:
        result = demjson3.decode(response_text)
        logger.info("✅ Layer 4: DemJSON parsing succeeded")
        return result
    except Exception as e:
        errors.append(f"DemJSON: {str(e)}")
        logger.debug(f"❌ Layer 4 failed: {str(e)}")

    raise MalformedResponseError(
        f"Failed to parse JSON after all attempts. Errors: {'; '.join(errors[:2])}",
        preview=response_text[: settings.RESPONSE_PREVIEW_CHARS],
    )


def salvage_fragments(response_text: str) -> List[Dict[str, Any]]:
    """
    Recover individual recommendation objects from broken JSON.

    Every { is tried as the start of an object. Balanced spans that parse
    to a dict with a "title" key are kept; anything else is skipped.
    Never raises.
    """
    fragments = []
    position = 0

    while True:
        start = response_text.find("{", position)
        if start < 0:
            break

        end = find_balanced_span(response_text, start)
        if end is None:
            position = start + 1
            continue

        try:
            candidate = json.loads(response_text[start:end])
        except json.JSONDecodeError:
            position = start + 1
            continue

        if isinstance(candidate, dict) and "title" in candidate:
            fragments.append(candidate)
            position = end
        else:
            position = start + 1

    return fragments


def _unwrap_recommendations(parsed: Any) -> Tuple[bool, List[Dict[str, Any]]]:
    """Accept a bare array or {"recommendations": [...]}; report whether the shape matched"""
    if isinstance(parsed, list):
        items = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("recommendations"), list):
        items = parsed["recommendations"]
    else:
        return False, []

    return True, [item for item in items if isinstance(item, dict)]


def parse_recommendation_payload(response_text: str) -> List[Dict[str, Any]]:
    """
    Parse Claude's recommendation response into a list of raw dicts.

    Args:
        response_text: Raw text response from Claude

    Returns:
        List of raw recommendation dicts (possibly empty if Claude returned [])

    Raises:
        MalformedResponseError: If nothing with a title can be recovered
    """
    logger.info(f"🔧 Parsing Claude response, length: {len(response_text)}")

    json_text = extract_json_text(response_text)

    try:
        parsed = repair_and_parse_json(json_text)
        matched, items = _unwrap_recommendations(parsed)
        if matched:
            logger.info(f"✅ Found {len(items)} recommendations")
            return items
        keys = list(parsed.keys())[:5] if isinstance(parsed, dict) else type(parsed).__name__
        logger.warning(f"⚠️  Response has no recommendations array (got {keys})")
    except MalformedResponseError as e:
        logger.warning(f"⚠️  All JSON parsers failed: {str(e)}")

    fragments = salvage_fragments(response_text)
    if fragments:
        logger.warning(f"⚠️  Salvaged {len(fragments)} recommendation fragments from malformed JSON")
        return fragments

    preview = response_text[: settings.RESPONSE_PREVIEW_CHARS]
    logger.error(f"❌ Could not recover any recommendations. Response preview: {preview[:200]}...")
    raise MalformedResponseError(
        "Failed to parse recommendations: no JSON object with a title found",
        preview=preview,
    )


def parse_json_response(response_text: str, fallback: Any = None) -> Any:
    """
    Lenient parse used by the multi-stage analyzer: extract and repair,
    returning fallback instead of raising.
    """
    try:
        return repair_and_parse_json(extract_json_text(response_text))
    except MalformedResponseError:
        logger.warning("⚠️  JSON parse failed, using fallback")
        return fallback

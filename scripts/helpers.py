import re
import json
import logging
from typing import Any

_LOG = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_clean_json(raw: str | dict | list | None) -> Any:
    """Parse model output that may be fenced, prefixed by chatter, or broken.

    Returns the decoded object/array, or {} when nothing parses.  Never raises.
    """
    if isinstance(raw, (dict, list)):
        return raw
    if not raw:
        return {}
    text = raw.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1)

    try:
        return json.loads(text)
    except ValueError:
        pass

    # fall back to the outermost {...} or [...] span
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = text.find(opener), text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start:end + 1])
            except ValueError:
                continue

    _LOG.warning("Failed to extract JSON from model output: %.200s", raw)
    return {}

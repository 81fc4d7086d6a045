"""
core/catalog_match.py
────────────────────────────────────────────────────────────────────────
Match one food name against the curated catalog.

The completion service picks a single catalog index plus a confidence
tier.  Only `high` is accepted (see `MatchResult.accepted`); medium / low
answers are logged with their rationale and the food goes to estimation.

Catalogs larger than `prompt_limit` are first shortlisted by embedding
similarity so the prompt stays bounded.
"""
from __future__ import annotations

import logging
from typing import Any, List, Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from core.models.meal import CatalogEntry, Confidence, MatchResult
from scripts.helpers import extract_clean_json
from services.gemini import CompletionError

_LOG = logging.getLogger(__name__)

MATCH_PROMPT = """You match a food the user ate against a catalog of branded menu items.

Food: "{food}"

Catalog (index | brand | name | description | category):
{catalog}

Respond with ONLY a JSON object:
{{"index": <catalog index or null>, "confidence": "high|medium|low", "rationale": "<one sentence>"}}

Be strict. Choose "high" only when the catalog item is clearly the SAME food
(same dish, allowing brand names, word order, or minor wording changes).
Foods that merely share an ingredient or a word are NOT matches: "grilled beef"
is not a beef pastry, "chicken salad" is not a chicken sandwich.  When in
doubt answer {{"index": null, "confidence": "low", ...}}.
"""


def _catalog_lines(catalog: Sequence[CatalogEntry]) -> str:
    return "\n".join(
        f"{i} | {c.brand or '-'} | {c.name} | {c.description or '-'} | {c.category or '-'}"
        for i, c in enumerate(catalog)
    )


def _entry_text(entry: CatalogEntry) -> str:
    return " ".join(p for p in (entry.brand, entry.name, entry.description) if p)


async def shortlist(
    service, food: str, catalog: Sequence[CatalogEntry], limit: int
) -> List[CatalogEntry]:
    """Top-`limit` catalog entries by cosine similarity to `food`."""
    if len(catalog) <= limit:
        return list(catalog)
    try:
        vecs = await service.embed([food] + [_entry_text(c) for c in catalog])
    except CompletionError as exc:
        _LOG.warning("catalog shortlist embedding failed: %s", exc)
        return list(catalog[:limit])

    sims = cosine_similarity(vecs[:1], vecs[1:])[0]
    order = np.argsort(-sims, kind="stable")[:limit]
    return [catalog[i] for i in order]


def parse_match(payload: Any, candidates: Sequence[CatalogEntry]) -> MatchResult:
    if not isinstance(payload, dict):
        return MatchResult(rationale="unparsable match response")

    rationale = str(payload.get("rationale") or "")
    try:
        confidence = Confidence(str(payload.get("confidence", "low")).strip().lower())
    except ValueError:
        confidence = Confidence.low

    index = payload.get("index")
    if isinstance(index, str) and index.strip().isdigit():
        index = int(index.strip())
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(candidates):
        return MatchResult(confidence=Confidence.low, rationale=rationale or "no match")
    return MatchResult(item=candidates[index], confidence=confidence, rationale=rationale)


async def match_food(
    service,
    food: str,
    catalog: Sequence[CatalogEntry],
    prompt_limit: int = 60,
) -> MatchResult:
    """Best catalog match for `food`.  Never raises; failures are `low`."""
    if not catalog:
        return MatchResult(rationale="catalog empty")

    candidates = await shortlist(service, food, catalog, prompt_limit)
    prompt = MATCH_PROMPT.format(food=food, catalog=_catalog_lines(candidates))
    try:
        raw = await service.complete(prompt, temperature=0.0, max_output_tokens=200)
    except CompletionError as exc:
        _LOG.warning("catalog match for %r failed: %s", food, exc)
        return MatchResult(rationale=f"match failed: {exc}")

    result = parse_match(extract_clean_json(raw), candidates)
    if result.item is not None and not result.accepted:
        _LOG.info(
            "discarding %s-confidence match %r -> %r: %s",
            result.confidence.value, food, result.item.name, result.rationale,
        )
    return result

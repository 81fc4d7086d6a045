"""
Import a brand menu into the `catalog_items` table.

Usage
-----

    # CSV with columns brand,name,description,category,serving_size,
    # calories,protein_g,carb_g,fat_g[,is_available]
    python -m scripts.seed_catalog path/to/menu.csv

    # tag every row with one brand
    python -m scripts.seed_catalog path/to/menu.csv --brand "Watchhouse"

Common alternative headers (kcal, protein, carbs, fat, item_name, title)
are mapped onto the canonical names.
"""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any, List

import pandas as pd

from services.db import add_catalog_items, init_models, session_scope

_ALIASES = {
    "item_name": "name",
    "title": "name",
    "kcal": "calories",
    "kcal_per_serving": "calories",
    "protein": "protein_g",
    "g_protein_per_serving": "protein_g",
    "carbs": "carb_g",
    "carbs_g": "carb_g",
    "g_carb_per_serving": "carb_g",
    "fat": "fat_g",
    "g_fat_per_serving": "fat_g",
}
_NUMERIC = ["calories", "protein_g", "carb_g", "fat_g"]
_TEXT = ["brand", "name", "description", "category", "serving_size"]


def load_menu(path: Path, brand: str | None = None) -> List[dict[str, Any]]:
    df = pd.read_csv(path)
    df.columns = [c.strip().lower() for c in df.columns]
    df = df.rename(columns=_ALIASES)
    if "name" not in df.columns:
        raise ValueError("CSV needs a 'name' column")

    if brand:
        df["brand"] = brand
    for col in _TEXT:
        if col not in df.columns:
            df[col] = None
    for col in _NUMERIC:
        df[col] = pd.to_numeric(df[col], errors="coerce") if col in df.columns else None
    df["is_available"] = (
        df["is_available"].astype(str).str.lower().isin(["true", "1", "yes"])
        if "is_available" in df.columns else True
    )

    df = df.dropna(subset=["name"])
    df = df[df["name"].astype(str).str.strip() != ""]
    df = df[_TEXT + _NUMERIC + ["is_available"]].astype(object)
    return df.where(pd.notna(df), None).to_dict("records")


async def _seed(rows: List[dict[str, Any]]) -> None:
    await init_models()
    async with session_scope() as db:
        count = await add_catalog_items(db, rows)
    print(f"✓ imported {count} catalog items")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("csv", type=Path, help="menu CSV file")
    parser.add_argument("--brand", help="brand applied to every row")
    args = parser.parse_args()

    asyncio.run(_seed(load_menu(args.csv, args.brand)))


if __name__ == "__main__":
    main()

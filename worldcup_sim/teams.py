from pathlib import Path
from typing import Dict, Mapping, Union

import pandas as pd


ROOT_DIR = Path(__file__).resolve().parents[1]
REFERENCE_DATA_DIR = ROOT_DIR / "reference_data"
TEAMS_PATH = REFERENCE_DATA_DIR / "teams.csv"

REGIONS = ("Europe", "America", "Africa", "Asia", "Oceania")

TIERS = ("Elite", "Strong", "Average", "Weak")
TIER_FLOORS = {"Elite": 80, "Strong": 65, "Average": 50}


def calculate_tier(skill: float) -> str:
    for tier in TIERS[:-1]:
        if skill >= TIER_FLOORS[tier]:
            return tier
    return TIERS[-1]


def tier_counts(ratings: Mapping[str, float]) -> Dict[str, int]:
    counts = {tier: 0 for tier in TIERS}
    for skill in ratings.values():
        counts[calculate_tier(skill)] += 1
    return counts


def load_teams(path: Union[str, Path, None] = None) -> pd.DataFrame:
    """Read team, region and skill columns; returns a frame indexed by team."""
    path = Path(path) if path else TEAMS_PATH
    if not path.exists():
        raise FileNotFoundError(f"Missing teams file: {path}")
    df = pd.read_csv(path)
    required = {"team", "region", "skill"}
    missing = required.difference(df.columns)
    if missing:
        raise ValueError(f"Teams file missing columns: {sorted(missing)}")
    df["team"] = df["team"].astype(str).str.strip()
    df["region"] = df["region"].astype(str).str.strip()
    unknown = sorted(set(df["region"]).difference(REGIONS))
    if unknown:
        raise ValueError(f"Teams file has unknown regions: {unknown}")
    dupes = df.loc[df["team"].duplicated(), "team"].tolist()
    if dupes:
        raise ValueError(f"Teams file lists teams more than once: {dupes[:10]}")
    df["skill"] = pd.to_numeric(df["skill"], errors="raise").round().astype(int)
    df["tier"] = df["skill"].apply(calculate_tier)
    return df.set_index("team")[["region", "skill", "tier"]]

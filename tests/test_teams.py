import pytest

from worldcup_sim.teams import REGIONS, calculate_tier, load_teams, tier_counts


@pytest.mark.parametrize(
    "skill,tier",
    [(100, "Elite"), (80, "Elite"), (79, "Strong"), (65, "Strong"), (64, "Average"), (50, "Average"), (49, "Weak"), (30, "Weak")],
)
def test_calculate_tier(skill, tier):
    assert calculate_tier(skill) == tier


def test_tier_counts():
    counts = tier_counts({"a": 90, "b": 70, "c": 70, "d": 10})
    assert counts == {"Elite": 1, "Strong": 2, "Average": 0, "Weak": 1}


def test_load_reference_teams():
    teams = load_teams()
    assert len(teams) == 160
    assert teams.index.is_unique
    assert set(teams["region"]) == set(REGIONS)
    assert teams["region"].value_counts()["Oceania"] == 5
    assert teams.loc["Argentina", "tier"] == "Elite"
    assert teams["skill"].between(30, 100).all()


def test_load_teams_strips_and_rounds(tmp_path):
    path = tmp_path / "teams.csv"
    path.write_text("team,region,skill\n Fiji ,Oceania,40.6\nTahiti, Oceania ,42\n")
    teams = load_teams(path)
    assert teams.index.tolist() == ["Fiji", "Tahiti"]
    assert teams.loc["Fiji", "skill"] == 41
    assert teams.loc["Tahiti", "region"] == "Oceania"


def test_load_teams_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_teams(tmp_path / "nope.csv")


@pytest.mark.parametrize(
    "content",
    [
        "team,skill\nFiji,40\n",
        "team,region,skill\nFiji,Antarctica,40\n",
        "team,region,skill\nFiji,Oceania,40\nFiji,Oceania,41\n",
    ],
)
def test_load_teams_rejects_bad_files(tmp_path, content):
    path = tmp_path / "teams.csv"
    path.write_text(content)
    with pytest.raises(ValueError):
        load_teams(path)

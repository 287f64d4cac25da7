### Simulate one full tournament from reference_data/teams.csv and write the outputs. ###

import argparse
import logging
from pathlib import Path

from worldcup_sim.config import DEFAULT_CONFIG_PATH, ConfigStore
from worldcup_sim.progress import progress_frame
from worldcup_sim.teams import TEAMS_PATH, load_teams
from worldcup_sim.tournament import Tournament


OUTPUT_DIR = Path(__file__).resolve().parent / "model_output"


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate qualifiers, World Cup and knockout.")
    parser.add_argument("--teams", default=str(TEAMS_PATH), help="CSV with team, region, skill")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="engine config JSON")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--year", type=int, default=2026)
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR))
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    ## Read in data ##

    teams = load_teams(args.teams)
    store = ConfigStore.load(args.config)
    tournament = Tournament.from_frame(
        teams, name=f"World Cup {args.year}", config_store=store, year=args.year
    )

    ## Simulate ##

    tournament.simulate(random_state=args.seed)

    ## Export ##

    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)
    tournament.results_frame().to_csv(out / "results.csv", index=False)
    tournament.ratings_frame().to_csv(out / "ratings.csv")
    progress_frame(tournament.qualifier_groups()).to_csv(out / "qualifier_progress.csv", index=False)

    print(f"champion:    {tournament.champion}")
    print(f"runner-up:   {tournament.runner_up}")
    print(f"third place: {tournament.third_place}")
    print(f"wrote {out}")


if __name__ == "__main__":
    main()

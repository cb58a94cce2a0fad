"""Pipeline orchestration — run_pipeline and main entry point."""

import os
from pathlib import Path

from pipeline.careers import aggregate_cwl_cache
from pipeline.constants import (
    CACHE_DIR, COC_API_TOKEN_ENV, CSV_SUBDIR, DATA_DIR, ENV_FILE, FAMILY_CLAN_TAGS,
    PLAYERS_SUBDIR, SEASONS_SUBDIR,
)
from pipeline.io_helpers import create_api_session, load_league_map, read_existing, write_json
from pipeline.league import (
    apply_live_leagues, enrich_players, enrich_season_clan_files, fetch_live_leagues,
)
from pipeline.season_clans import build_season_clan_details
from pipeline.seasons import write_season_outputs
from pipeline.timelines import write_war_timelines
from pipeline.views import write_global_views

AGGREGATED_FILE = "players-aggregated.json"


def run_pipeline(data_dir=DATA_DIR, cache_dir=CACHE_DIR, csv_dir=None,
                 family_tags=FAMILY_CLAN_TAGS, build_timelines=True, session=None):
    """Run every stage in order. Returns the number of family players written.

    session, when given, is an API session used to fill in the current
    season's league tier. Lookup failures never stop the run.
    """
    seasons_dir = data_dir / SEASONS_SUBDIR
    csv_dir = csv_dir or data_dir / CSV_SUBDIR

    print("\n[1/7] Loading league CSVs...")
    league_map = load_league_map(csv_dir)

    if build_timelines:
        print("\n[2/7] Building war timelines...")
        wars = write_war_timelines(cache_dir, seasons_dir, family_tags)
        print(f"  {wars} war timelines written")
    else:
        print("\n[2/7] Skipping war timelines (--skip-timelines)")

    print("\n[3/7] Aggregating season-clan details...")
    clan_seasons = build_season_clan_details(seasons_dir, family_tags, league_map)
    print(f"  {clan_seasons} season-clan files written")

    print("\n[4/7] Aggregating CWL careers...")
    players = aggregate_cwl_cache(cache_dir)

    print("\n[5/7] Enriching with league data...")
    matched = enrich_players(players, league_map)
    updated = enrich_season_clan_files(seasons_dir, league_map, family_tags)
    print(f"  {matched} player seasons matched, {updated} season-clan files updated")
    if session is not None:
        leagues = fetch_live_leagues(session, family_tags)
        filled = apply_live_leagues(seasons_dir, leagues)
        print(f"  {filled} current-season league tiers filled from the API")
    if players:
        write_json(data_dir / AGGREGATED_FILE, players)
    else:
        print("  No players aggregated, keeping previous career data")

    print("\n[6/7] Building season summaries...")
    write_season_outputs(data_dir, seasons_dir, family_tags, league_map)

    print("\n[7/7] Building global player views...")
    aggregated = read_existing(data_dir / AGGREGATED_FILE)
    if not isinstance(aggregated, list):
        print(f"  {AGGREGATED_FILE} not found, skipping player views")
        return 0
    return write_global_views(data_dir, aggregated, family_tags, PLAYERS_SUBDIR)


def main():
    import argparse
    parser = argparse.ArgumentParser(description="CWL Stats Data Pipeline")
    parser.add_argument("--data-dir", type=Path, default=DATA_DIR,
                        help="Output directory (default: public/data)")
    parser.add_argument("--cache-dir", type=Path, default=CACHE_DIR,
                        help="CWL snapshot cache (default: tmp/cwl-cache)")
    parser.add_argument("--csv-dir", type=Path, default=None,
                        help="League CSV directory (default: <data-dir>/mix csv)")
    parser.add_argument("--skip-timelines", action="store_true",
                        help="Reuse existing war timeline files instead of rebuilding them")
    parser.add_argument("--fetch-leagues", action="store_true",
                        help=f"Look up current league tiers (needs {COC_API_TOKEN_ENV})")
    args = parser.parse_args()

    from dotenv import load_dotenv
    load_dotenv(ENV_FILE)

    print("CWL Stats Data Pipeline")
    print("=" * 50)

    session = None
    if args.fetch_leagues:
        token = os.environ.get(COC_API_TOKEN_ENV)
        if token:
            session = create_api_session(token)
        else:
            print(f"\n{COC_API_TOKEN_ENV} not set, skipping live league lookup")

    try:
        count = run_pipeline(
            data_dir=args.data_dir,
            cache_dir=args.cache_dir,
            csv_dir=args.csv_dir,
            build_timelines=not args.skip_timelines,
            session=session,
        )
    finally:
        if session is not None:
            session.close()

    print(f"\nDone! {count} family players → {args.data_dir}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
CWL Stats Data Pipeline

Folds cached Clan War League snapshots, war timelines and league CSV exports
into the static JSON files the dashboard reads from public/data/.

Usage:
    python scripts/build_data.py                   # Full rebuild from the cache
    python scripts/build_data.py --skip-timelines  # Reuse existing war files
    python scripts/build_data.py --fetch-leagues   # Also look up current league tiers

Requires COC_API_TOKEN (env or .env.local) for --fetch-leagues.
"""

from pipeline.main import main

if __name__ == "__main__":
    main()

"""
Wellspring — Gamification Engine for a Mental-Health Platform
==============================================================
Turns patient wellness activity (mood logs, journal entries, exercise
completions, daily check-ins) into points, levels, consecutive-day
streaks, badges, and leaderboards.  The surrounding web platform calls
the engine synchronously per request; every write path is a single
per-patient transaction.

Package layout::

    wellspring/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Level formula + presentation constants
    ├── errors.py          # Domain exception hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + transactional session helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default gameplay settings
    ├── engine/
    │   ├── events.py      # ActivityKind, WellnessEvent envelope, base points
    │   ├── reward.py      # Base / long-entry / streak bonus pipeline (pure)
    │   ├── streaks.py     # Consecutive-day streak continuation (pure)
    │   ├── badges.py      # Badge criteria evaluation + progress (pure)
    │   └── cache.py       # In-memory settings + badge catalog cache
    ├── services/
    │   ├── ledger_service.py       # PointsLedger
    │   ├── streak_service.py       # StreakTracker
    │   ├── badge_service.py        # BadgeEngine
    │   ├── leaderboard_service.py  # LeaderboardRanker
    │   ├── checkin_service.py      # DailyCheckInService
    │   ├── activity_service.py     # recordActivity / getStats facade
    │   ├── reconciliation_service.py  # Repair cached aggregates from logs
    │   └── seed.py                 # Badge catalog seeder (YAML)
    ├── seeds/
    │   └── badges.yaml    # Initial badge catalog
    └── api/
        ├── __main__.py    # `python -m wellspring.api` launcher
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine / cache / JWT dependencies
        └── routes/        # Patient + admin REST endpoints
"""

__version__ = "0.1.0"

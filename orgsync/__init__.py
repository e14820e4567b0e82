"""
OrgSync — University Organization Management Service
=====================================================
Backs the admin / officer / member dashboards of a university's student
organizations: rosters, role assignment, posts and events, quizzes,
community goals, minigame challenges, contests, attendance and coins.

Package layout::

    orgsync/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Enumerations, coin defaults, label helpers
    ├── errors.py          # Domain exceptions (mapped to HTTP codes)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings seeder
    ├── engine/
    │   ├── roles.py       # Role resolution + TTL cache
    │   ├── listing.py     # Search / filter / sort / paginate
    │   ├── goals.py       # Community goal progress math
    │   ├── leaderboard.py # Top-N + caller ranking
    │   └── realtime.py    # Coin counter pub/sub
    ├── services/          # One module per dashboard area
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT + role dependencies
        ├── auth.py        # /auth/me, profile completion
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"

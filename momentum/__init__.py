"""
Momentum — Activity Streaks & Achievements for Discord Communities
===================================================================
Counts what members do every day, turns consecutive days into streaks
(with monthly freezes to forgive a missed day), and rewards milestones
with achievements and cosmetic roles.

Package layout::

    momentum/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Rarity colors, tier badges, display helpers
    ├── errors.py          # NotFound / Conflict / PermissionDenied / Transient
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Core + seasonal achievement seeder
    ├── engine/
    │   ├── events.py      # ActivityEvent + debounce contract
    │   ├── streaks.py     # Pure streak transition (touch / expiry)
    │   ├── criteria.py    # Tagged-union achievement criteria
    │   ├── catalog.py     # AchievementCatalog (injected, not global)
    │   └── achievements.py # Criteria evaluation + special predicates
    ├── services/
    │   ├── activity_service.py     # Daily counters + totals provider
    │   ├── streak_service.py       # touch_activity, sweeps, leaderboard
    │   ├── achievement_service.py  # Evaluate + at-most-once award
    │   ├── admin_service.py        # Custom achievements + audit log
    │   ├── role_service.py         # RoleRewardReconciler + role config
    │   ├── notification_service.py # Best-effort DM with result type
    │   ├── award_dispatch.py       # Role hand-off + notification per award
    │   ├── backfill_service.py     # Retroactive award pass (dry-run capable)
    │   └── embeds.py               # Discord embed builders
    ├── bot/
    │   ├── core.py        # Bot subclass, cog loader
    │   ├── backfill.py    # momentum-backfill command
    │   └── cogs/
    │       ├── activity.py  # Message/command/voice capture (debounced)
    │       ├── streaks.py   # /streak, /leaderboard, /achievements
    │       ├── admin.py     # /achievement … admin group
    │       └── tasks.py     # Daily sweeps, catalog reload, orphan cleanup
    └── api/
        ├── main.py        # Read-only FastAPI app
        ├── deps.py        # Cached engine + catalog dependencies
        └── routes/
            └── public.py  # Streak, totals, award, leaderboard endpoints
"""

__version__ = "0.1.0"

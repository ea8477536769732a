"""
Community engagement features.

- **giveaway_engine.py**: reaction giveaways, eligibility filtering and end timers.
- **starboard_engine.py**: ⭐ starboard posts and starrer reconciliation.
- **points.py**: vault transfers and message levels.
"""

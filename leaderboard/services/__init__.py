"""Business logic services.

Services contain all ranking/settlement logic and are called by routes.
Services accept their stores explicitly (see `leaderboard.container`).
"""

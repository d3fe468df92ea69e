"""
Tournament formats.

Each format implements TournamentFormat (base.py) and owns one state model
(state.py). Formats are pure: no database, no clock, no randomness.
"""

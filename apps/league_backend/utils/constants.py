"""
Constants used across the league session system.
"""

# Session catalog
MAX_TEAMS_PER_SESSION = 24
DEFAULT_WEEKS_AHEAD = 3

# (weekday label, Python weekday number with Monday=0)
SESSION_DAYS = (
    ("tuesday", 1),
    ("wednesday", 2),
    ("thursday", 3),
)

# Registration aggregation: a registration is confirmed once this many
# members are active for the week
CONFIRMED_ACTIVE_THRESHOLD = 3

# Rosters: captain plus 2-3 invited players at creation, 4 members max
MIN_INVITED_PLAYERS = 2
MAX_INVITED_PLAYERS = 3
MAX_ROSTER_SIZE = 4
MIN_TEAM_NAME_LENGTH = 2

DEFAULT_CAPTAIN_NAME = "Captain"
DEFAULT_PERSON_NAME = "Player"

"""
Single place for default game configuration.
Change these to alter the rules used when a game is created without explicit settings.
"""
# Troops each player starts with.
DEFAULT_STARTING_TROOPS = 100
# Round-win lead that ends the game early.
DEFAULT_VICTORY_MARGIN = 3
# Safety cap so a game can never run forever.
DEFAULT_MAX_ROUNDS = 50

# Bot commits at most this fraction of its remaining pool each round.
BOT_MAX_FRACTION = 0.8

# Multiplayer rooms: join code length and how long an untouched room survives cleanup.
ROOM_CODE_LENGTH = 6
ROOM_IDLE_MINUTES = 60

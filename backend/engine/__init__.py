"""
Sequential Blotto Game Engine
Core rules without web framework, database, or UI
"""

PLAYER1 = "player1"
PLAYER2 = "player2"
TIE = "tie"

# Game status values (stored as plain strings in snapshots).
STATUS_WAITING = "waiting"
STATUS_PLAYING = "playing"
STATUS_FINISHED = "finished"

"""
Computer opponent for single-player games.
Uniform random commitment; no opponent modelling.
"""

import math
import random

from backend.config import BOT_MAX_FRACTION
from backend.engine.state import Player


def choose_move(bot: Player, rng: random.Random | None = None) -> int:
    """
    Pick how many troops the bot commits this round.
    Returns 0 for an empty pool, otherwise a uniform integer in
    [0, floor(troops * BOT_MAX_FRACTION)]. Pass a seeded rng for reproducible play.
    """
    if bot.troops <= 0:
        return 0
    rng = rng or random
    ceiling = min(bot.troops, math.floor(bot.troops * BOT_MAX_FRACTION))
    return rng.randint(0, ceiling)

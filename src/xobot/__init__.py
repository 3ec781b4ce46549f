"""xobot package exposing tic-tac-toe rules, the minimax AI, and the Telegram webhook."""

from .ai import MinimaxAI
from .engine import GameEngine, GameSession
from .game import Board
from .webhook import app

__all__ = ["Board", "GameEngine", "GameSession", "MinimaxAI", "app"]

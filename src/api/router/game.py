"""
Game API router - delegates to the game controller.
"""

from src.api.controller.game.game_controller import router

__all__ = ['router']

from cookjournal.models.user import User, UserSession
from cookjournal.models.recipe import Attempt, Image, Recipe

__all__ = ["User", "UserSession", "Recipe", "Attempt", "Image"]

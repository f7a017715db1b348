"""Rutas de la API."""

from . import auth, images, notifications, profiles, recipes, social

__all__ = ["auth", "images", "notifications", "profiles", "recipes", "social"]

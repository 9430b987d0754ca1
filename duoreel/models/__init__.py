"""Pydantic models for the DuoReel backend."""

from .movie import WatchedMovie, coerce_movie_id, movie_title
from .notification import Notification, NotificationData, NotificationType
from .user import UserProfile

__all__ = [
    "WatchedMovie",
    "coerce_movie_id",
    "movie_title",
    "Notification",
    "NotificationData",
    "NotificationType",
    "UserProfile",
]

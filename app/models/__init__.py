from app.models.base import Base
from app.models.friendship import Friendship
from app.models.notification import Notification
from app.models.place import Place
from app.models.place_comment import PlaceComment
from app.models.place_visit import PlaceVisit
from app.models.user import User

__all__ = [
    "Base",
    "Friendship",
    "Notification",
    "Place",
    "PlaceComment",
    "PlaceVisit",
    "User",
]

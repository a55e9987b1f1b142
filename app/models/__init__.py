from .profile import Profile, Follow
from .quest import Quest
from .habit import Habit
from .post import Post, PostLike, Comment
from .notification import Notification
from .report import Report
from .achievement import Achievement
from .reward_event import RewardEvent

__all__ = [
    "Profile",
    "Follow",
    "Quest",
    "Habit",
    "Post",
    "PostLike",
    "Comment",
    "Notification",
    "Report",
    "Achievement",
    "RewardEvent",
]

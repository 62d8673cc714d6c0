"""SQLAlchemy models for the post scheduler."""
from post_scheduler.models.territory import Territory
from post_scheduler.models.dealership import Dealership
from post_scheduler.models.profile import Profile, ProfileTerritory
from post_scheduler.models.facebook_group import FacebookGroup
from post_scheduler.models.scheduled_post import ScheduledPost
from post_scheduler.models.post_event import PostEvent
from post_scheduler.models.reminder_run import ReminderRun

__all__ = [
    "Territory",
    "Dealership",
    "Profile",
    "ProfileTerritory",
    "FacebookGroup",
    "ScheduledPost",
    "PostEvent",
    "ReminderRun",
]

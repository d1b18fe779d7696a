"""Table-level repositories. Each one owns the SQL for its table(s) only."""

from modfeed.repositories.community_repo import CommunityRepository
from modfeed.repositories.mod_repo import ModRepository
from modfeed.repositories.subscription_repo import SubscriptionRepository

__all__ = [
    "CommunityRepository",
    "ModRepository",
    "SubscriptionRepository",
]

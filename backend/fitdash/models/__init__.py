from fitdash.models.account import AthleteAccount
from fitdash.models.activity import Activity
from fitdash.models.goal import Goal

__all__ = [
    "Activity",
    "AthleteAccount",
    "Goal",
]

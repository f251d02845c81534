"""
Admin — user management actions.
"""

from bazaar.admin._users import UserActionRequest, UserActionDone, PLANNERS, UserAdmin

__all__ = ("UserActionRequest", "UserActionDone", "PLANNERS", "UserAdmin")

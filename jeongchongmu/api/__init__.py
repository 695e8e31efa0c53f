"""Backend API collaborators."""
from jeongchongmu.api.client import ApiClient
from jeongchongmu.api.groups import GroupApi, GroupMemberApi
from jeongchongmu.api.expenses import ExpenseApi
from jeongchongmu.api.settlements import SettlementApi
from jeongchongmu.api.votes import VoteApi

__all__ = ["ApiClient", "GroupApi", "GroupMemberApi", "ExpenseApi", "SettlementApi", "VoteApi"]

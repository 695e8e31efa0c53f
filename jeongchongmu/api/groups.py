"""
Group and group member endpoints.
"""
from typing import List
from jeongchongmu.api.client import ApiClient
from jeongchongmu.schemas.group import Group, GroupMember, GroupRequest, JoinGroupRequest


class GroupApi:
    """Group service."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def list_my_groups(self) -> List[Group]:
        """Groups the current user belongs to."""
        data = await self.client.get("/api/groups", default_error="Failed to load groups.")
        return [Group.model_validate(item) for item in data or []]

    async def get_group(self, group_id: int) -> Group:
        data = await self.client.get(f"/api/groups/{group_id}", default_error="Failed to load group.")
        return Group.model_validate(data)

    async def create_group(self, request: GroupRequest) -> Group:
        """Create a group; the creator becomes its OWNER."""
        data = await self.client.post("/api/groups", json=request.to_payload(), default_error="Failed to create group.")
        return Group.model_validate(data)

    async def update_group(self, group_id: int, request: GroupRequest) -> Group:
        """Rename a group (OWNER only)."""
        data = await self.client.put(
            f"/api/groups/{group_id}", json=request.to_payload(), default_error="Failed to update group."
        )
        return Group.model_validate(data)

    async def delete_group(self, group_id: int) -> None:
        """Delete a group (OWNER only)."""
        await self.client.delete(f"/api/groups/{group_id}", default_error="Failed to delete group.")

    async def regenerate_invite_code(self, group_id: int) -> Group:
        """Issue a new invite code; the previous one stops working."""
        data = await self.client.post(
            f"/api/groups/{group_id}/invite-code", default_error="Failed to regenerate invite code."
        )
        return Group.model_validate(data)


class GroupMemberApi:
    """Group membership service."""

    def __init__(self, client: ApiClient):
        self.client = client

    async def join_group(self, invite_code: str) -> GroupMember:
        request = JoinGroupRequest(invite_code=invite_code)
        data = await self.client.post("/api/groups/join", json=request.to_payload(), default_error="Failed to join group.")
        return GroupMember.model_validate(data)

    async def list_members(self, group_id: int) -> List[GroupMember]:
        data = await self.client.get(f"/api/groups/{group_id}/members", default_error="Failed to load members.")
        return [GroupMember.model_validate(item) for item in data or []]

    async def get_member(self, group_id: int, user_id: int) -> GroupMember:
        data = await self.client.get(
            f"/api/groups/{group_id}/members/{user_id}", default_error="Failed to load member."
        )
        return GroupMember.model_validate(data)

    async def remove_member(self, group_id: int, user_id: int) -> None:
        """Kick a member (OWNER only)."""
        await self.client.delete(f"/api/groups/{group_id}/members/{user_id}", default_error="Failed to remove member.")

    async def leave_group(self, group_id: int) -> None:
        await self.client.delete(f"/api/groups/{group_id}/leave", default_error="Failed to leave group.")

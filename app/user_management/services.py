"""
User identity services: resolve the current user from the request.
"""
from typing import Optional, List
from flask import request


class UserService:
    """Identity provider for the quota gate and its routes."""
    
    def __init__(self, admin_user_ids: List[str]):
        self.admin_user_ids = [uid.strip() for uid in admin_user_ids if uid and uid.strip()]
    
    def get_current_user_id(self) -> Optional[str]:
        """Get the current user ID from cookies. Blank ids count as missing."""
        uid = request.cookies.get("uid")
        if uid is None or not uid.strip():
            return None
        return uid.strip()
    
    def is_authenticated(self) -> bool:
        """Check if the current user is authenticated."""
        return bool(self.get_current_user_id())
    
    def is_admin_user(self, uid: str) -> bool:
        """Check if the user is an admin based on configuration."""
        return bool(uid) and uid.strip() in self.admin_user_ids
    
    def require_auth_json(self) -> tuple[Optional[str], Optional[dict]]:
        """Require authentication for JSON endpoints, return error if not authenticated."""
        uid = self.get_current_user_id()
        if not uid:
            return None, {"error": "no-uid"}
        return uid, None

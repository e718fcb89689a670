"""External recommender collaborator client."""
from typing import List, Optional

from spotlight.config import settings
from spotlight.utils.http import CollaboratorError, request_json


class RecommenderClient:
    """Returns an ordered list of highlight ids for a user."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.recommender_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Recommender URL is not configured")

    async def get_recommendations(self, user_id: str) -> List[str]:
        data = await request_json(
            "GET",
            f"{self.base_url}/recommendations",
            "recommender",
            params={"userId": user_id},
        )
        items = (data.get("itemList") or data.get("items")) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise CollaboratorError("Recommender returned an invalid item list")

        ids: List[str] = []
        for item in items:
            if isinstance(item, dict):
                item = item.get("itemId") or item.get("id")
            if item:
                ids.append(str(item))
        return ids

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument

from categories import CATEGORIES, category_rank
from config import Settings

logger = logging.getLogger(__name__)


def pipeline_for_user(email: str) -> List[Dict[str, Any]]:
    """Aggregation that groups a user's tasks by category, board order first."""
    branches = [
        {"case": {"$eq": ["$_id", c]}, "then": category_rank(c)} for c in CATEGORIES
    ]
    return [
        {"$match": {"user": email}},
        {"$group": {"_id": "$category", "tasks": {"$push": "$$ROOT"}}},
        {
            "$addFields": {
                "sortOrder": {
                    "$switch": {"branches": branches, "default": len(CATEGORIES) + 1}
                }
            }
        },
        {"$sort": {"sortOrder": 1}},
        {"$project": {"_id": 0, "category": "$_id", "tasks": 1}},
    ]


class TaskStore:
    """The `users` and `tasks` collections behind one Mongo client.

    Open once at startup with `open()`, release with `close()`.
    """

    def __init__(self, client: AsyncIOMotorClient, database_name: str):
        self.client = client
        db = client[database_name]
        self.users = db["users"]
        self.tasks = db["tasks"]

    @classmethod
    async def open(cls, settings: Settings) -> "TaskStore":
        client = AsyncIOMotorClient(settings.database_url)
        store = cls(client, settings.database_name)
        if settings.explicit_connect:
            await client.admin.command("ping")
            logger.info("pinged deployment, connected to MongoDB")
        return store

    def close(self) -> None:
        self.client.close()

    async def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self.users.find_one({"email": email})

    async def insert_user(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.users.insert_one(doc)
        return {"acknowledged": result.acknowledged, "insertedId": result.inserted_id}

    async def insert_task(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.tasks.insert_one(doc)
        return {"acknowledged": result.acknowledged, "insertedId": result.inserted_id}

    async def tasks_by_category(self, email: str) -> List[Dict[str, Any]]:
        cursor = self.tasks.aggregate(pipeline_for_user(email))
        return await cursor.to_list(length=None)

    async def delete_task(self, task_id: str) -> Dict[str, Any]:
        result = await self.tasks.delete_one({"_id": ObjectId(task_id)})
        return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}

    async def update_task(self, task_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.tasks.find_one_and_update(
            {"_id": ObjectId(task_id)},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )

    async def find_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        return await self.tasks.find_one({"_id": ObjectId(task_id)})


def get_store(request: Request) -> TaskStore:
    return request.app.state.store

# services/stats.py
from typing import List
import logging

from database import persistence_guard
from models.proctoring import UserSummary, UserViolationStats

logger = logging.getLogger(__name__)


def _count_severity(severity: str) -> dict:
    return {"$sum": {"$cond": [{"$eq": ["$severity", severity]}, 1, 0]}}


class StatsAggregator:
    """Per-user violation rollups for a single test.

    Users without any event for the test do not appear in the result.
    """

    def __init__(self, db):
        self.db = db

    async def summarize(self, test_id: str) -> List[UserViolationStats]:
        pipeline = [
            {"$match": {"testId": test_id}},
            {"$group": {
                "_id": "$userId",
                "totalViolations": {"$sum": 1},
                "avgCheatingScore": {"$avg": "$cheatingScore"},
                "criticalCount": _count_severity("critical"),
                "highCount": _count_severity("high"),
            }},
            {"$sort": {"totalViolations": -1, "_id": 1}},
        ]
        async with persistence_guard("aggregate proctoring stats"):
            groups = await self.db.proctoring_events.aggregate(pipeline).to_list(None)
            users = await self.db.users.find(
                {"id": {"$in": [group["_id"] for group in groups]}},
                {"_id": 0, "id": 1, "name": 1, "email": 1},
            ).to_list(None)

        users_by_id = {user["id"]: UserSummary(**user) for user in users}
        stats = [
            UserViolationStats(
                userId=group["_id"],
                totalViolations=group["totalViolations"],
                avgCheatingScore=group["avgCheatingScore"] or 0,
                criticalCount=group["criticalCount"],
                highCount=group["highCount"],
                user=users_by_id.get(group["_id"]),
            )
            for group in groups
        ]
        logger.info(f"Computed proctoring stats for test {test_id}: {len(stats)} user(s)")
        return stats

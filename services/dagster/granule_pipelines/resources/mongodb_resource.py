"""MongoDB Resource - Legacy granule document store operations."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import cached_property
from typing import Any, ClassVar, Dict

from dagster import ConfigurableResource
from pydantic import Field
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from granule_ledger.models import Granule

__all__ = ["MongoDBResource"]


class MongoDBResource(ConfigurableResource):
    """
    Dagster resource for the legacy granule document store.

    The relational ledger is the source of truth. This store is written
    after the relational commit and is only eventually consistent with it
    while the migration away from it is in progress.
    """

    connection_string: str = Field(..., description="MongoDB connection URI")
    database: str = Field("granule_ledger", description="MongoDB database name")

    GRANULES: ClassVar[str] = "granules"

    @cached_property
    def _client(self) -> MongoClient:
        return MongoClient(self.connection_string)

    def _get_db(self) -> Database:
        return self._client[self.database]

    def _get_collection(self, name: str) -> Collection:
        return self._get_db()[name]

    @staticmethod
    def _strip_object_id(doc: Dict) -> Dict:
        stripped = dict(doc)
        stripped.pop("_id", None)
        return stripped

    # ------------------------------------------------------------------
    # Granule operations
    # ------------------------------------------------------------------

    def insert_granule(self, granule: Granule) -> str:
        """
        Create or replace the document for a granule (keyed by granule_id).

        Returns the ObjectId of the granule document as a string.
        """
        collection = self._get_collection(self.GRANULES)
        document = granule.model_dump(mode="json")
        document["updated_at"] = datetime.now(timezone.utc)
        collection.replace_one({"granule_id": granule.granule_id}, document, upsert=True)
        stored = collection.find_one({"granule_id": granule.granule_id}, projection={"_id": 1})
        return str(stored["_id"])

    def get_granule(self, granule_id: str) -> Granule | None:
        """
        Load a granule by granule_id.
        """
        collection = self._get_collection(self.GRANULES)
        document = collection.find_one({"granule_id": granule_id})
        if not document:
            return None
        return Granule(**self._strip_object_id(document))

    def granule_exists(self, granule_id: str) -> bool:
        collection = self._get_collection(self.GRANULES)
        return collection.count_documents({"granule_id": granule_id}, limit=1) > 0

    def update_granule(self, granule_id: str, patch: Dict[str, Any]) -> bool:
        """
        Apply a partial update to a granule document.

        Returns True if a document matched.
        """
        collection = self._get_collection(self.GRANULES)
        update_doc = dict(patch)
        update_doc["updated_at"] = datetime.now(timezone.utc)
        result = collection.update_one({"granule_id": granule_id}, {"$set": update_doc})
        return result.matched_count > 0

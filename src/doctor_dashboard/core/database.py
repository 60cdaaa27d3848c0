"""
Database utility abstractions for MongoDB operations
"""

import logging
from typing import Optional, Dict, Any, List
from datetime import datetime

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
import pymongo

from .config import get_database_config, DatabaseConfig

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Centralized database connection and operation manager.
    Provides a single point for database connections and common operations.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None, client: Optional[AsyncIOMotorClient] = None):
        self.config = config or get_database_config()
        self._client: Optional[AsyncIOMotorClient] = client
        self._owns_client = client is None
        self._database: Optional[AsyncIOMotorDatabase] = None
        self._collections: Dict[str, AsyncIOMotorCollection] = {}
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize database connection and collections"""
        if self._initialized:
            return

        try:
            if self._client is None:
                logger.info(f"Initializing database connection to {self.config.uri}")
                self._client = AsyncIOMotorClient(
                    self.config.uri,
                    maxPoolSize=self.config.max_pool_size,
                    minPoolSize=self.config.min_pool_size,
                    maxIdleTimeMS=self.config.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.config.server_selection_timeout_ms
                )

                # Test connection
                await self._client.admin.command('ping')
                logger.info("Database connection established successfully")

            self._database = self._client[self.config.name]

            # Initialize collections
            await self._setup_collections()

            self._initialized = True
            logger.info("Database manager initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    async def _setup_collections(self) -> None:
        """Setup database collections with proper indexes"""
        logger.info("Setting up database collections and indexes...")

        self._collections = {
            "users": self._database[self.config.users_collection],
            "doctor_patients": self._database[self.config.doctor_patients_collection],
            "health_records": self._database[self.config.health_records_collection],
        }

        await self._create_indexes()

    async def _create_indexes(self) -> None:
        """Create all necessary database indexes"""
        try:
            users_coll = self._collections["users"]
            await users_coll.create_index([("doctor_id", pymongo.ASCENDING)])
            await users_coll.create_index([("email", pymongo.ASCENDING)])

            # One list entry per (doctor, patient)
            doctor_patients_coll = self._collections["doctor_patients"]
            await doctor_patients_coll.create_index([
                ("doctor_id", pymongo.ASCENDING),
                ("patient_id", pymongo.ASCENDING)
            ], unique=True)

            records_coll = self._collections["health_records"]
            await records_coll.create_index([
                ("patient_id", pymongo.ASCENDING),
                ("created_at", pymongo.DESCENDING)
            ])
            await records_coll.create_index([("added_by", pymongo.ASCENDING)])

            logger.info("Database indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create database indexes: {e}")
            raise

    async def cleanup(self) -> None:
        """Cleanup database connections"""
        if self._client and self._owns_client:
            self._client.close()
            logger.info("Database connections closed")
        self._initialized = False

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """Get the database instance"""
        if not self._initialized:
            raise RuntimeError("Database manager not initialized. Call initialize() first.")
        return self._database

    @property
    def client(self) -> AsyncIOMotorClient:
        """Get the MongoDB client instance"""
        if not self._initialized:
            raise RuntimeError("Database manager not initialized. Call initialize() first.")
        return self._client

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        """Get a collection by name"""
        if not self._initialized:
            raise RuntimeError("Database manager not initialized. Call initialize() first.")

        if name in self._collections:
            return self._collections[name]

        return self._database[name]

    async def health_check(self) -> Dict[str, Any]:
        """Perform database health check"""
        try:
            if not self._initialized:
                return {"status": "error", "message": "Database not initialized"}

            await self._client.admin.command('ping')

            return {
                "status": "healthy",
                "database": self.config.name,
                "collections": list(self._collections.keys()),
            }

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e)
            }


class BaseRepository:
    """
    Base repository class providing common database operations.
    All repository classes should inherit from this.
    """

    def __init__(self, db_manager: DatabaseManager, collection_name: str):
        self.db_manager = db_manager
        self.collection_name = collection_name

    @property
    def collection(self) -> AsyncIOMotorCollection:
        """Get the collection for this repository"""
        return self.db_manager.get_collection(self.collection_name)

    async def find_one(
        self,
        filter_dict: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Find a single document"""
        try:
            return await self.collection.find_one(filter_dict, projection)
        except Exception as e:
            logger.error(f"Error in find_one for {self.collection_name}: {e}")
            raise

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[tuple]] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Find multiple documents"""
        try:
            cursor = self.collection.find(filter_dict, projection)

            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)

            return await cursor.to_list(length=limit)
        except Exception as e:
            logger.error(f"Error in find_many for {self.collection_name}: {e}")
            raise

    async def insert_one(self, document: Dict[str, Any]) -> str:
        """Insert a single document"""
        try:
            document.setdefault("created_at", datetime.utcnow())

            result = await self.collection.insert_one(document)
            return str(result.inserted_id)
        except Exception as e:
            logger.error(f"Error in insert_one for {self.collection_name}: {e}")
            raise

    async def update_one(
        self,
        filter_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
        upsert: bool = False
    ) -> bool:
        """Update a single document"""
        try:
            # Ensure updated_at is set
            if "$set" in update_dict:
                update_dict["$set"].setdefault("updated_at", datetime.utcnow())
            else:
                update_dict["$set"] = {"updated_at": datetime.utcnow()}

            result = await self.collection.update_one(filter_dict, update_dict, upsert=upsert)
            return result.modified_count > 0 or (upsert and result.upserted_id is not None)
        except Exception as e:
            logger.error(f"Error in update_one for {self.collection_name}: {e}")
            raise

    async def delete_one(self, filter_dict: Dict[str, Any]) -> bool:
        """Delete a single document"""
        try:
            result = await self.collection.delete_one(filter_dict)
            return result.deleted_count > 0
        except Exception as e:
            logger.error(f"Error in delete_one for {self.collection_name}: {e}")
            raise

    async def count_documents(self, filter_dict: Dict[str, Any] = None) -> int:
        """Count documents matching the filter"""
        try:
            return await self.collection.count_documents(filter_dict or {})
        except Exception as e:
            logger.error(f"Error in count_documents for {self.collection_name}: {e}")
            raise

    def watch(self, pipeline: List[Dict[str, Any]]):
        """Open a change stream on the collection.

        Change streams need a replica set or sharded cluster. The returned
        stream is an async context manager and an async iterator.
        """
        return self.collection.watch(pipeline, full_document="updateLookup")

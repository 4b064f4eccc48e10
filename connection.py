"""
Connection utilities for the document store, OpenAI and Gemini.

Store errors are surfaced raw (wrapped only in StoreFailure by the store
adapters); nothing here retries.
"""

import time
from typing import Optional

from dotenv import load_dotenv

# Load dotenv at module level FIRST
load_dotenv(override=True)

from pymongo import MongoClient
import google.generativeai as genai
from openai import OpenAI

from config import load_config
from logger import get_logger
from store.base import DocumentStore
from store.memory import InMemoryDocumentStore
from store.mongo import MongoDocumentStore

logger = get_logger(__name__)


class StoreConnectionError(Exception):
    """Document store could not be configured."""
    pass


class GeminiConnectionError(Exception):
    """Gemini connection error."""
    pass


class Connections:
    """Manages connections to external services."""

    def __init__(self):
        self._store: Optional[DocumentStore] = None
        self._mongo_client: Optional[MongoClient] = None
        self._openai_client: Optional[OpenAI] = None
        self._gemini_configured: bool = False

    def get_store(self) -> DocumentStore:
        """
        Get or create the document store selected by DOCUMENT_STORE.

        ``memory`` keeps everything in process; ``mongo`` connects to MONGODB_URL.
        """
        if self._store is not None:
            return self._store

        config = load_config()
        kind = config.document_store
        if kind == "memory":
            self._store = InMemoryDocumentStore()
            logger.info("[STORE] Using in-memory document store")
            return self._store

        if kind != "mongo":
            raise StoreConnectionError(f"Unknown DOCUMENT_STORE: {kind}")

        url = config.mongodb_url
        if not url:
            raise StoreConnectionError("MONGODB_URL environment variable is not set")

        database = config.mongodb_database
        collection = config.mongodb_collection
        logger.info(f"[STORE] Creating MongoDB client", database=database, collection=collection)

        self._mongo_client = MongoClient(url, serverSelectionTimeoutMS=10000)
        self._store = MongoDocumentStore(self._mongo_client, database=database, collection=collection)
        return self._store

    def set_store(self, store: DocumentStore) -> None:
        """Install an explicit store (tests, embedding applications)."""
        self._store = store

    def test_store_connection(self) -> dict:
        """
        Ping the document store.

        Returns raw result or raw exception info - NO custom messages.
        """
        try:
            store = self.get_store()
            start = time.time()
            if self._mongo_client is not None:
                self._mongo_client.admin.command("ping")
            duration = (time.time() - start) * 1000

            logger.info(f"[STORE] Ping OK", backend=type(store).__name__, duration_ms=round(duration, 2))
            return {
                "success": True,
                "backend": type(store).__name__,
                "duration_ms": duration
            }

        except Exception as e:
            error_info = {
                "success": False,
                "exception_type": type(e).__name__,
                "exception_message": str(e),
                "raw_error": repr(e)
            }
            logger.error(f"[STORE] FAILED: {error_info}")
            return error_info

    def configure_gemini(self) -> bool:
        """Configure Gemini API."""
        if self._gemini_configured:
            return True

        api_key = load_config().gemini_api_key
        if not api_key:
            raise GeminiConnectionError("GEMINI_API_KEY not set")

        genai.configure(api_key=api_key)
        self._gemini_configured = True
        logger.info("[GEMINI] Configured successfully")
        return True

    def get_openai_client(self) -> OpenAI:
        """Get OpenAI client."""
        if self._openai_client is not None:
            return self._openai_client

        api_key = load_config().openai_api_key
        if not api_key:
            raise ValueError("OPENAI_API_KEY not set")

        self._openai_client = OpenAI(api_key=api_key)
        logger.info("[OPENAI] Client created")
        return self._openai_client

    def health_check(self) -> dict:
        """Health check - returns raw results."""
        status = {
            "store": {"healthy": False, "details": None},
            "ai": {"healthy": False, "details": None},
        }

        store_result = self.test_store_connection()
        status["store"] = {
            "healthy": store_result.get("success", False),
            "details": store_result
        }

        provider = load_config().ai_provider
        try:
            if provider == "gemini":
                self.configure_gemini()
            else:
                self.get_openai_client()
            status["ai"] = {"healthy": True, "details": f"{provider} configured"}
        except Exception as e:
            status["ai"] = {
                "healthy": False,
                "details": {"exception_type": type(e).__name__, "message": str(e)}
            }

        return status

    def reset(self) -> None:
        """Drop cached clients; the next call rebuilds them from the environment."""
        if self._store is not None:
            self._store.close()
        self._store = None
        self._mongo_client = None
        self._openai_client = None
        self._gemini_configured = False


# Global instance
connections = Connections()


def get_store() -> DocumentStore:
    """Get global document store."""
    return connections.get_store()


def get_openai_client() -> OpenAI:
    """Get global OpenAI client."""
    return connections.get_openai_client()


def configure_gemini() -> bool:
    """Configure Gemini."""
    return connections.configure_gemini()


def validate_store_connection() -> dict:
    """Test document store connection."""
    return connections.test_store_connection()


def health_check() -> dict:
    """Health check."""
    return connections.health_check()

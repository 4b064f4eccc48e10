"""
Unit tests for connection.py - Store and AI client initialization.
"""

import pytest
import os
from unittest.mock import Mock, patch

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import AppConfig
from connection import Connections, GeminiConnectionError, StoreConnectionError
from store import InMemoryDocumentStore
from store.mongo import MongoDocumentStore
from tests.test_logger import test_logger


class TestConnections:
    """Test suite for Connections class."""

    def setup_method(self):
        """Setup test environment."""
        test_logger.log_section("TESTING: connection.py - Connections Class")

    def test_connections_init(self):
        test_logger.log_test_start("connection.py", "Connections.__init__", "initialization")

        try:
            conn = Connections()
            assert conn._store is None
            assert conn._mongo_client is None
            assert conn._openai_client is None
            assert conn._gemini_configured is False

            test_logger.log_test_pass("connection.py", "Connections.__init__", "initialization")
        except Exception as e:
            test_logger.log_test_fail("connection.py", "Connections.__init__", "initialization", str(e))
            raise

    @patch.dict(os.environ, {}, clear=True)
    def test_default_store_is_in_memory(self):
        conn = Connections()
        store = conn.get_store()
        assert isinstance(store, InMemoryDocumentStore)
        assert conn.get_store() is store

    @patch.dict(os.environ, {"DOCUMENT_STORE": "mongo", "MONGODB_URL": "mongodb://db:27017",
                             "MONGODB_DATABASE": "books"}, clear=True)
    @patch("connection.MongoClient")
    def test_mongo_store(self, mock_client):
        test_logger.log_test_start("connection.py", "get_store", "mongo")

        try:
            conn = Connections()
            store = conn.get_store()

            assert isinstance(store, MongoDocumentStore)
            mock_client.assert_called_once_with("mongodb://db:27017", serverSelectionTimeoutMS=10000)
            mock_client.return_value.__getitem__.assert_called_with("books")

            test_logger.log_test_pass("connection.py", "get_store", "mongo")
        except Exception as e:
            test_logger.log_test_fail("connection.py", "get_store", "mongo", str(e))
            raise

    @patch.dict(os.environ, {"DOCUMENT_STORE": "mongo"}, clear=True)
    def test_mongo_without_url(self):
        with pytest.raises(StoreConnectionError):
            Connections().get_store()

    @patch.dict(os.environ, {"DOCUMENT_STORE": "redis"}, clear=True)
    def test_unknown_store(self):
        with pytest.raises(StoreConnectionError):
            Connections().get_store()

    @patch("connection.MongoClient")
    @patch("connection.load_config")
    def test_store_settings_come_from_app_config(self, mock_load_config, mock_client):
        mock_load_config.return_value = AppConfig(
            document_store="mongo", mongodb_url="mongodb://cfg:27017", mongodb_database="library"
        )

        store = Connections().get_store()

        assert isinstance(store, MongoDocumentStore)
        mock_client.assert_called_once_with("mongodb://cfg:27017", serverSelectionTimeoutMS=10000)
        mock_client.return_value.__getitem__.assert_called_with("library")

    def test_set_store(self):
        conn = Connections()
        store = InMemoryDocumentStore()
        conn.set_store(store)
        assert conn.get_store() is store

    @patch.dict(os.environ, {"OPENAI_API_KEY": "test_key"})
    @patch("connection.OpenAI")
    def test_get_openai_client(self, mock_openai):
        conn = Connections()
        client = conn.get_openai_client()
        assert client is mock_openai.return_value
        assert conn.get_openai_client() is client
        mock_openai.assert_called_once_with(api_key="test_key")

    @patch.dict(os.environ, {}, clear=True)
    def test_openai_without_key(self):
        with pytest.raises(ValueError):
            Connections().get_openai_client()

    @patch.dict(os.environ, {"GEMINI_API_KEY": "g_key"})
    @patch("connection.genai")
    def test_configure_gemini(self, mock_genai):
        conn = Connections()
        assert conn.configure_gemini() is True
        assert conn.configure_gemini() is True
        mock_genai.configure.assert_called_once_with(api_key="g_key")

    @patch.dict(os.environ, {}, clear=True)
    def test_gemini_without_key(self):
        with pytest.raises(GeminiConnectionError):
            Connections().configure_gemini()


class TestHealthCheck:

    def setup_method(self):
        test_logger.log_section("TESTING: connection.py - health_check")

    @patch.dict(os.environ, {"AI_PROVIDER": "openai", "OPENAI_API_KEY": "k"}, clear=True)
    @patch("connection.OpenAI")
    def test_healthy_memory_store(self, _mock_openai):
        status = Connections().health_check()
        assert status["store"]["healthy"] is True
        assert status["store"]["details"]["backend"] == "InMemoryDocumentStore"
        assert status["ai"]["healthy"] is True

    @patch.dict(os.environ, {"DOCUMENT_STORE": "mongo", "MONGODB_URL": "mongodb://db"}, clear=True)
    @patch("connection.MongoClient")
    def test_mongo_ping_failure(self, mock_client):
        mock_client.return_value.admin.command.side_effect = RuntimeError("no primary")

        status = Connections().health_check()

        assert status["store"]["healthy"] is False
        assert status["store"]["details"]["exception_message"] == "no primary"
        assert status["ai"]["healthy"] is False

    def test_reset_closes_store(self):
        conn = Connections()
        store = Mock()
        conn.set_store(store)
        conn.reset()
        store.close.assert_called_once()
        assert conn._store is None

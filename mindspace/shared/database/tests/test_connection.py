"""Tests for the conversation database connection pool."""
import json
import pytest
from unittest.mock import MagicMock, patch

from mindspace.shared.database.connection import (
    DatabaseConfig,
    ConnectionManager,
)

POOL = "mindspace.shared.database.connection.pool.ThreadedConnectionPool"


class TestDatabaseConfig:

    def test_defaults(self):
        config = DatabaseConfig()

        assert config.host == "localhost"
        assert config.database == "mindspace"
        assert (config.pool_min, config.pool_max) == (1, 10)
        assert config.ssl_mode == "require"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DB_HOST", "env-host")
        monkeypatch.setenv("DB_PORT", "5434")
        monkeypatch.setenv("DB_USER", "env_user")
        monkeypatch.setenv("DB_POOL_MAX", "25")

        config = DatabaseConfig.from_env()

        assert config.host == "env-host"
        assert config.port == 5434
        assert config.username == "env_user"
        assert config.pool_max == 25

    def test_connect_kwargs(self):
        kwargs = DatabaseConfig(host="db", username="svc", password="pw").connect_kwargs()

        assert kwargs["dbname"] == "mindspace"
        assert kwargs["user"] == "svc"
        assert kwargs["sslmode"] == "require"

    @patch("boto3.client")
    def test_from_secrets_manager(self, mock_boto_client, monkeypatch):
        monkeypatch.setenv("DB_POOL_MAX", "4")
        mock_boto_client.return_value.get_secret_value.return_value = {
            "SecretString": json.dumps({
                "host": "rds.example.com",
                "port": 5433,
                "username": "svc",
                "password": "secret",
            })
        }

        config = DatabaseConfig.from_secrets_manager("arn:aws:secretsmanager:db", region="eu-west-1")

        mock_boto_client.assert_called_once_with("secretsmanager", region_name="eu-west-1")
        assert config.host == "rds.example.com"
        assert config.port == 5433
        assert config.username == "svc"
        # Keys absent from the secret keep their environment values
        assert config.database == "mindspace"
        assert config.pool_max == 4

    @patch("boto3.client")
    def test_from_secrets_manager_failure_raises(self, mock_boto_client):
        mock_boto_client.return_value.get_secret_value.side_effect = Exception("denied")

        with pytest.raises(Exception, match="denied"):
            DatabaseConfig.from_secrets_manager("arn:aws:secretsmanager:db")


class TestConnectionManager:

    @pytest.fixture
    def manager(self):
        return ConnectionManager(DatabaseConfig(host="db", pool_max=3))

    def test_not_initialized_on_construction(self, manager):
        assert manager.initialized is False

    @patch(POOL)
    def test_initialize_is_idempotent(self, mock_pool_cls, manager):
        manager.initialize()
        manager.initialize()

        mock_pool_cls.assert_called_once()
        args, kwargs = mock_pool_cls.call_args
        assert args == (1, 3)
        assert kwargs["host"] == "db"
        assert manager.initialized is True

    @patch(POOL)
    def test_initialize_failure_raises(self, mock_pool_cls, manager):
        mock_pool_cls.side_effect = Exception("connection refused")

        with pytest.raises(Exception):
            manager.initialize()

        assert manager.initialized is False

    @patch(POOL)
    def test_get_connection_opens_pool_lazily(self, mock_pool_cls, manager):
        conn = MagicMock()
        mock_pool_cls.return_value.getconn.return_value = conn

        with manager.get_connection() as c:
            assert c is conn

        mock_pool_cls.assert_called_once()
        mock_pool_cls.return_value.putconn.assert_called_once_with(conn)

    @patch(POOL)
    def test_connection_returned_on_error(self, mock_pool_cls, manager):
        conn = MagicMock()
        mock_pool_cls.return_value.getconn.return_value = conn

        with pytest.raises(RuntimeError):
            with manager.get_connection():
                raise RuntimeError("query failed")

        mock_pool_cls.return_value.putconn.assert_called_once_with(conn)

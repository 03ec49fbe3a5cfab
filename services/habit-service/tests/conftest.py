"""
Shared fixtures: moto-backed DynamoDB tables, gateway, frozen clock, API client
"""
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from app.config import Settings, TableConfig
from app.dynamo import COMPLETION_SORT_KEY, COMPLETIONS, HABITS, USERS, StorageGateway
from app.main import create_app
from app.middleware.auth import get_current_user_id

HABITS_TABLE = "test-habits"
COMPLETIONS_TABLE = "test-completions"
USERS_TABLE = "test-users"


class FrozenClock:
    """Callable clock for services; advance() moves it forward"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs):
        self.moment = self.moment + timedelta(**kwargs)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials for moto"""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        AWS_REGION="us-east-1",
        HABITS_TABLE_NAME=HABITS_TABLE,
        COMPLETIONS_TABLE_NAME=COMPLETIONS_TABLE,
        USERS_TABLE_NAME=USERS_TABLE,
        COGNITO_USER_POOL_ID="us-east-1_TestPool",
        COGNITO_CLIENT_ID="test-client-id",
        COGNITO_REGION="us-east-1",
    )


@pytest.fixture
def dynamodb_tables(aws_credentials):
    """Create mock DynamoDB tables"""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")

        dynamodb.create_table(
            TableName=HABITS_TABLE,
            KeySchema=[
                {"AttributeName": "userId", "KeyType": "HASH"},
                {"AttributeName": "habitId", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "userId", "AttributeType": "S"},
                {"AttributeName": "habitId", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST"
        )

        dynamodb.create_table(
            TableName=COMPLETIONS_TABLE,
            KeySchema=[
                {"AttributeName": "userId", "KeyType": "HASH"},
                {"AttributeName": COMPLETION_SORT_KEY, "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "userId", "AttributeType": "S"},
                {"AttributeName": COMPLETION_SORT_KEY, "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST"
        )

        dynamodb.create_table(
            TableName=USERS_TABLE,
            KeySchema=[{"AttributeName": "userId", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "userId", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST"
        )

        yield dynamodb


@pytest.fixture
def gateway(dynamodb_tables, settings):
    return StorageGateway(TableConfig.from_settings(settings), settings)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 10, 15, 30, tzinfo=timezone.utc))


@pytest.fixture
def current_user():
    """Mutable identity used by the API client; tests may switch users"""
    return {"id": "user-123"}


@pytest.fixture
def app(settings, gateway, current_user):
    application = create_app(settings)
    application.state.gateway = gateway
    application.dependency_overrides[get_current_user_id] = lambda: current_user["id"]
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


# ============= HELPERS =============

def put_habit(gateway, user_id="user-123", habit_id="habit-1", name="Read 10 pages",
              xp_reward=10, is_active=True, **extra):
    habit = {
        "userId": user_id,
        "habitId": habit_id,
        "name": name,
        "description": "",
        "isActive": is_active,
        "createdAt": "2024-03-01T00:00:00.000Z",
        "updatedAt": "2024-03-01T00:00:00.000Z",
        **extra,
    }
    if xp_reward is not None:
        habit["xpReward"] = xp_reward
    gateway.put_item(HABITS, habit)
    return habit


def put_user(gateway, user_id="user-123", total_xp=0, level=1):
    user = {
        "userId": user_id,
        "level": level,
        "totalXP": total_xp,
        "stats": {},
        "createdAt": "2024-03-01T00:00:00.000Z",
        "updatedAt": "2024-03-01T00:00:00.000Z",
    }
    gateway.put_item(USERS, user)
    return user


def get_user(gateway, user_id="user-123"):
    return gateway.get_item(USERS, {"userId": user_id})


def all_completions(gateway, user_id="user-123"):
    return gateway.query_partition(COMPLETIONS, user_id)

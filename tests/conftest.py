import logging

import pytest

from waitkit.schemas import WaiterDef, WaiterModel


def stacks(*statuses: str) -> dict:
    """A DescribeStacks-shaped response with one stack per status."""
    return {
        "Stacks": [
            {"StackName": f"stack-{i}", "StackStatus": status}
            for i, status in enumerate(statuses)
        ]
    }


@pytest.fixture
def create_complete_def() -> WaiterDef:
    """status == CREATE_COMPLETE -> success, CREATE_FAILED -> failure."""
    return WaiterDef.from_dict("CreateComplete", {
        "operation": "DescribeThing",
        "delay": 0,
        "maxAttempts": 3,
        "acceptors": [
            {"matcher": "pathAll", "argument": "status", "expected": "CREATE_COMPLETE", "state": "success"},
            {"matcher": "pathAny", "argument": "status", "expected": "CREATE_FAILED", "state": "failure"},
        ],
    })


@pytest.fixture
def retry_on_validation_def() -> WaiterDef:
    """Retries on ValidationError, succeeds on CREATE_COMPLETE."""
    return WaiterDef.from_dict("RetryOnValidation", {
        "operation": "DescribeThing",
        "delay": 0,
        "maxAttempts": 5,
        "acceptors": [
            {"matcher": "path", "argument": "status", "expected": "CREATE_COMPLETE", "state": "success"},
            {"matcher": "error", "expected": "ValidationError", "state": "retry"},
        ],
    })


@pytest.fixture
def model_data() -> dict:
    """A small waiter model in wire format."""
    return {
        "version": 2,
        "waiters": {
            "InstanceRunning": {
                "operation": "DescribeInstances",
                "delay": 15,
                "maxAttempts": 40,
                "acceptors": [
                    {"matcher": "pathAll", "argument": "Reservations[].Instances[].State.Name",
                     "expected": "running", "state": "success"},
                    {"matcher": "pathAny", "argument": "Reservations[].Instances[].State.Name",
                     "expected": "terminated", "state": "failure"},
                    {"matcher": "error", "expected": "InvalidInstanceID.NotFound", "state": "retry"},
                ],
            },
            "BucketExists": {
                "operation": "HeadBucket",
                "delay": 5,
                "maxAttempts": 20,
                "acceptors": [
                    {"matcher": "status", "expected": 200, "state": "success"},
                    {"matcher": "error", "expected": "NotFound", "state": "retry"},
                ],
            },
        },
    }


@pytest.fixture
def model(model_data) -> WaiterModel:
    return WaiterModel.from_dict(model_data)


@pytest.fixture(autouse=True)
def waitkit_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.config/waitkit."""
    home = tmp_path / "waitkit_home"
    monkeypatch.setenv("WAITKIT_HOME", str(home))
    return home


@pytest.fixture(autouse=True)
def reset_waitkit_logger():
    """setup_logging() mutates the shared 'waitkit' logger; restore it."""
    logger = logging.getLogger("waitkit")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)

import pytest
from fastapi.testclient import TestClient

from enrol_invitation.api.main import app
from enrol_invitation.app_shell.config import ConfigurationError, validate_ops_rules


def test_data_dir_created(rules, tmp_path) -> None:
    data_dir = tmp_path / "data"

    validate_ops_rules(rules, data_dir)

    assert data_dir.is_dir()


def test_missing_required_env(rules, tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("INVITATION_TEST_REQUIRED", raising=False)
    strict = rules.model_copy(
        update={"ops": rules.ops.model_copy(update={"required_env": ["INVITATION_TEST_REQUIRED"]})}
    )

    with pytest.raises(ConfigurationError, match="INVITATION_TEST_REQUIRED"):
        validate_ops_rules(strict, tmp_path)

    monkeypatch.setenv("INVITATION_TEST_REQUIRED", "1")
    validate_ops_rules(strict, tmp_path)


def test_health() -> None:
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "enrol-invitation"}


def test_routes_mounted() -> None:
    paths = {route.path for route in app.routes}  # type: ignore[attr-defined]

    assert "/enrol/invitation/redeem" in paths
    assert "/api/courses/{course_id}/invitations" in paths
    assert "/api/courses/{course_id}/invitation-actions" in paths

from pathlib import Path

import pytest

from enrol_invitation.rules.loader import load_rules


def test_project_rules_load() -> None:
    rules = load_rules(Path("rules.yaml"))

    assert rules.project.slug == "enrol-invitation"
    assert rules.invitation.redeem_path == "/enrol/invitation/redeem"
    assert rules.invitation.token_length == 32
    assert "{enrolurl}" in rules.invitation.invite_email.body
    assert rules.rbac.roles["manager"] == ["*"]


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_rules(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("site: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML"):
        load_rules(path)


def test_schema_violation(tmp_path) -> None:
    content = Path("rules.yaml").read_text().replace("token_length: 32", "token_length: 4")
    path = tmp_path / "rules.yaml"
    path.write_text(content)

    with pytest.raises(ValueError, match="Rules validation failed"):
        load_rules(path)


def test_yaml_inside_markdown_fence(tmp_path) -> None:
    content = "# Rules\n\n```yaml\n" + Path("rules.yaml").read_text() + "\n```\n\nNotes.\n"
    path = tmp_path / "rules.md"
    path.write_text(content)

    assert load_rules(path).site.fullname == "Course Site"

# tests/test_cli.py
from extensions import db
from models import User
from auth import decode_token


def test_make_admin_creates_user(app):
    result = app.test_cli_runner().invoke(args=["make-admin", "auth0|boss", "--username", "boss"])

    assert result.exit_code == 0
    assert "is now admin" in result.output
    with app.app_context():
        user = User.query.filter_by(auth0_id="auth0|boss").one()
        assert user.username == "boss"
        assert user.is_admin


def test_make_admin_promotes_existing_member(app, make_user):
    user_id = make_user("member")

    result = app.test_cli_runner().invoke(args=["make-admin", "auth0|member"])

    assert result.exit_code == 0
    with app.app_context():
        assert db.session.get(User, user_id).roles == ["member", "admin"]


def test_issue_token(app):
    result = app.test_cli_runner().invoke(args=["issue-token", "auth0|dev"])

    assert result.exit_code == 0
    with app.app_context():
        assert decode_token(result.output.strip())["sub"] == "auth0|dev"


def test_check_sponsor_chains(app, make_user):
    x = make_user("x")
    y = make_user("y", sponsor_id=x)
    runner = app.test_cli_runner()

    assert runner.invoke(args=["check-sponsor-chains"]).exit_code == 0

    with app.app_context():
        db.session.get(User, x).sponsor_id = y
        db.session.commit()

    result = runner.invoke(args=["check-sponsor-chains"])
    assert result.exit_code == 1
    assert f"user {x}" in result.output


def test_commission_config(app):
    result = app.test_cli_runner().invoke(args=["commission-config"])

    assert result.exit_code == 0
    assert "Direct:   10.0%" in result.output
    assert "Level  1: 5.0%" in result.output
    assert "Total:    19.0% across 3 levels" in result.output

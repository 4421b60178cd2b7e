"""
Tests for the SQLite storage layer.
"""

import sqlite3

import pytest

from alithos.storage import alerts, content, db, teams, templates, users, workspaces
from alithos.storage.teams import OwnerRoleError
from alithos.storage.workspaces import WorkspaceLockedError

USER = "user-1"
OTHER = "user-2"
CONDITIONS = [{"type": "price", "operator": "gt", "value": 70}]
ACTIONS = [{"type": "notify", "config": {"message": "hi"}}]


@pytest.fixture(autouse=True)
def database(db_path):
    return db_path


class TestHelpers:
    def test_json_round_trip(self):
        assert db.load_json(db.dump_json({"a": [1, 2]})) == {"a": [1, 2]}
        assert db.dump_json(None) is None
        assert db.load_json("") is None
        assert db.load_json("{not json") is None

    def test_ids_are_unique(self):
        assert db.new_id() != db.new_id()

    def test_reset_keeps_schema(self):
        alerts.create_alert(USER, "a", CONDITIONS, ACTIONS)
        db.reset_db()
        assert alerts.list_alerts(USER) == []
        alerts.create_alert(USER, "b", CONDITIONS, ACTIONS)
        assert len(alerts.list_alerts(USER)) == 1


class TestAlerts:
    """Alert rows and trigger history."""

    def test_create_decodes_columns(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS, market_id="m1")
        assert alert["conditions"] == CONDITIONS
        assert alert["actions"] == ACTIONS
        assert alert["is_active"] is True
        assert alert["cooldown_period_minutes"] == 5
        assert alert["market_id"] == "m1"
        assert alert["last_triggered"] is None

    def test_scoped_to_owner(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        assert alerts.get_alert(alert["id"], OTHER) is None
        assert alerts.get_alert(alert["id"])["user_id"] == USER
        assert alerts.list_alerts(OTHER) == []

    def test_active_listed_first(self):
        inactive = alerts.create_alert(USER, "off", CONDITIONS, ACTIONS, is_active=False)
        active = alerts.create_alert(USER, "on", CONDITIONS, ACTIONS)
        assert [a["id"] for a in alerts.list_alerts(USER)] == [active["id"], inactive["id"]]
        assert [a["id"] for a in alerts.list_alerts(USER, active=False)] == [inactive["id"]]
        assert [a["id"] for a in alerts.list_active_alerts()] == [active["id"]]

    def test_update(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        updated = alerts.update_alert(alert["id"], USER, name="Renamed", is_active=False)
        assert updated["name"] == "Renamed"
        assert updated["is_active"] is False
        assert updated["conditions"] == CONDITIONS

    def test_update_unknown_field(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        with pytest.raises(ValueError, match="Unknown alert field"):
            alerts.update_alert(alert["id"], USER, owner=OTHER)

    def test_failed_write_leaves_database_writable(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        with pytest.raises(sqlite3.IntegrityError):
            alerts.update_alert(alert["id"], USER, name=None)

        assert alerts.get_alert(alert["id"])["name"] == "Breakout"
        updated = alerts.update_alert(alert["id"], USER, cooldown_period_minutes=10)
        assert updated["cooldown_period_minutes"] == 10
        assert workspaces.create_workspace(USER, "W")["name"] == "W"

    def test_update_other_users_alert(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        assert alerts.update_alert(alert["id"], OTHER, name="x") is None

    def test_delete(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        assert not alerts.delete_alert(alert["id"], OTHER)
        assert alerts.delete_alert(alert["id"], USER)
        assert alerts.get_alert(alert["id"]) is None

    def test_record_trigger(self):
        alert = alerts.create_alert(USER, "Breakout", CONDITIONS, ACTIONS)
        stamp = alerts.record_trigger(alert["id"], "2024-06-01T12:00:00+00:00")
        assert stamp == "2024-06-01T12:00:00+00:00"
        assert alerts.get_alert(alert["id"])["last_triggered"] == stamp
        assert alerts.record_trigger("missing") is None

    def test_trigger_history(self):
        first = alerts.create_alert(USER, "first", CONDITIONS, ACTIONS)
        second = alerts.create_alert(USER, "second", CONDITIONS, ACTIONS)
        alerts.create_alert(USER, "never", CONDITIONS, ACTIONS)
        alerts.record_trigger(first["id"], "2024-06-01T10:00:00+00:00")
        alerts.record_trigger(second["id"], "2024-06-01T11:00:00+00:00")

        rows, total = alerts.get_trigger_history(USER)
        assert total == 2
        assert [r["name"] for r in rows] == ["second", "first"]

        rows, total = alerts.get_trigger_history(USER, limit=1, offset=1)
        assert total == 2
        assert [r["name"] for r in rows] == ["first"]

        rows, total = alerts.get_trigger_history(USER, alert_id=first["id"])
        assert total == 1


class TestWorkspaces:
    """Workspaces, locking and defaults."""

    def test_template_config_creates_default_layout(self):
        workspace = workspaces.create_workspace(USER, "Desk", template_config={"cards": []})
        layouts = workspaces.list_layouts(workspace["id"])
        assert len(layouts) == 1
        assert layouts[0]["name"] == "Default Layout"
        assert layouts[0]["is_default"] is True
        assert layouts[0]["config"] == {"cards": []}

    def test_list_includes_layouts(self):
        workspace = workspaces.create_workspace(USER, "Desk")
        workspaces.create_layout(workspace["id"], USER, "Main", {"cards": [1]})
        listed = workspaces.list_workspaces(USER)
        assert [w["name"] for w in listed] == ["Desk"]
        assert [l["name"] for l in listed[0]["layouts"]] == ["Main"]
        assert workspaces.list_workspaces(OTHER) == []

    def test_single_default_workspace(self):
        first = workspaces.create_workspace(USER, "One", is_default=True)
        second = workspaces.create_workspace(USER, "Two", is_default=True)
        assert workspaces.get_workspace(first["id"])["is_default"] is False
        assert workspaces.get_workspace(second["id"])["is_default"] is True

        workspaces.update_workspace(first["id"], USER, is_default=True)
        assert workspaces.get_workspace(second["id"])["is_default"] is False

    def test_locked_workspace_only_unlocks(self):
        workspace = workspaces.create_workspace(USER, "Desk", locked=True)
        with pytest.raises(WorkspaceLockedError):
            workspaces.update_workspace(workspace["id"], USER, name="Renamed")
        with pytest.raises(WorkspaceLockedError):
            workspaces.update_workspace(workspace["id"], USER, locked=False, name="Renamed")

        unlocked = workspaces.update_workspace(workspace["id"], USER, locked=False)
        assert unlocked["locked"] is False
        assert workspaces.update_workspace(workspace["id"], USER, name="Renamed")["name"] == "Renamed"

    def test_update_missing(self):
        workspace = workspaces.create_workspace(USER, "Desk")
        assert workspaces.update_workspace(workspace["id"], OTHER, name="x") is None

    def test_delete_cascades_layouts_and_team(self):
        workspace = workspaces.create_workspace(USER, "Desk", template_config={})
        team = teams.create_team(workspace["id"], "Desk team", USER)

        assert not workspaces.delete_workspace(workspace["id"], OTHER)
        assert workspaces.delete_workspace(workspace["id"], USER)

        assert workspaces.list_layouts(workspace["id"]) == []
        assert teams.get_team(team["id"]) is None
        assert teams.get_role(team["id"], USER) is None


class TestLayouts:
    """Layout defaults and share tokens."""

    @pytest.fixture
    def workspace(self):
        return workspaces.create_workspace(USER, "Desk")

    def test_default_listed_first(self, workspace):
        default = workspaces.create_layout(workspace["id"], USER, "A", {}, is_default=True)
        workspaces.create_layout(workspace["id"], USER, "B", {})
        assert workspaces.list_layouts(workspace["id"])[0]["id"] == default["id"]

    def test_single_default_layout(self, workspace):
        first = workspaces.create_layout(workspace["id"], USER, "A", {}, is_default=True)
        second = workspaces.create_layout(workspace["id"], USER, "B", {}, is_default=True)
        assert workspaces.get_layout(first["id"])["is_default"] is False
        workspaces.update_layout(first["id"], USER, is_default=True)
        assert workspaces.get_layout(second["id"])["is_default"] is False

    def test_owner_scope(self, workspace):
        layout = workspaces.create_layout(workspace["id"], USER, "A", {})
        assert workspaces.get_layout(layout["id"], OTHER) is None
        assert workspaces.update_layout(layout["id"], OTHER, name="x") is None
        assert not workspaces.delete_layout(layout["id"], OTHER)
        assert workspaces.delete_layout(layout["id"], USER)

    def test_share_token_lifecycle(self, workspace):
        layout = workspaces.create_layout(workspace["id"], USER, "A", {"cards": []})
        assert layout["share_token"] is None

        shared = workspaces.update_layout(layout["id"], USER, is_shared=True)
        token = shared["share_token"]
        assert token
        assert workspaces.get_shared_layout(token)["id"] == layout["id"]

        again = workspaces.update_layout(layout["id"], USER, is_shared=True, name="B")
        assert again["share_token"] == token

        unshared = workspaces.update_layout(layout["id"], USER, is_shared=False)
        assert unshared["share_token"] is None
        assert workspaces.get_shared_layout(token) is None

    def test_shared_on_create(self, workspace):
        layout = workspaces.create_layout(workspace["id"], USER, "A", {}, is_shared=True)
        assert workspaces.get_shared_layout(layout["share_token"])["name"] == "A"


class TestTeams:
    """Teams and membership."""

    @pytest.fixture
    def team(self):
        workspace = workspaces.create_workspace(USER, "Desk")
        return teams.create_team(workspace["id"], "Desk team", USER)

    def test_creator_is_owner(self, team):
        assert teams.get_role(team["id"], USER) == "OWNER"
        assert [m["user_id"] for m in team["members"]] == [USER]

    def test_by_workspace(self, team):
        assert teams.get_team_by_workspace(team["workspace_id"])["id"] == team["id"]
        assert teams.get_team_by_workspace("missing") is None

    def test_members_carry_user_details(self, team):
        users.update_user(OTHER, email="b@example.com")
        teams.add_member(team["id"], OTHER, "VIEWER")
        members = teams.list_members(team["id"])
        assert [m["role"] for m in members] == ["OWNER", "VIEWER"]
        assert members[1]["user"] == {"id": OTHER, "email": "b@example.com", "wallet_address": None}

    def test_role_changes(self, team):
        teams.add_member(team["id"], OTHER)
        assert teams.get_role(team["id"], OTHER) == "MEMBER"
        assert teams.update_member_role(team["id"], OTHER, "ADMIN")["role"] == "ADMIN"
        assert teams.update_member_role(team["id"], "nobody", "ADMIN") is None

    def test_owner_role_cannot_be_added(self, team):
        with pytest.raises(OwnerRoleError):
            teams.add_member(team["id"], OTHER, "OWNER")
        assert teams.get_role(team["id"], OTHER) is None

    def test_owner_role_cannot_be_changed(self, team):
        teams.add_member(team["id"], OTHER)
        with pytest.raises(OwnerRoleError):
            teams.update_member_role(team["id"], USER, "MEMBER")
        with pytest.raises(OwnerRoleError):
            teams.update_member_role(team["id"], OTHER, "OWNER")
        assert [m["role"] for m in teams.list_members(team["id"])] == ["OWNER", "MEMBER"]

    def test_transfer_ownership(self, team):
        teams.add_member(team["id"], OTHER)
        assert teams.transfer_ownership(team["id"], OTHER)["role"] == "OWNER"
        assert teams.get_role(team["id"], USER) == "ADMIN"
        owners = [m for m in teams.list_members(team["id"]) if m["role"] == "OWNER"]
        assert [m["user_id"] for m in owners] == [OTHER]
        assert teams.transfer_ownership(team["id"], "nobody") is None

    def test_remove_member(self, team):
        teams.add_member(team["id"], OTHER)
        assert teams.remove_member(team["id"], OTHER)
        assert not teams.remove_member(team["id"], OTHER)
        assert teams.get_role(team["id"], OTHER) is None

    def test_teams_for_user(self, team):
        assert [t["id"] for t in teams.list_teams_for_user(USER)] == [team["id"]]
        assert teams.list_teams_for_user(OTHER) == []

    def test_rename_and_delete(self, team):
        assert teams.update_team(team["id"], "Renamed")["name"] == "Renamed"
        assert teams.delete_team(team["id"])
        assert teams.get_team(team["id"]) is None
        assert not teams.delete_team(team["id"])


class TestTemplates:
    """Workspace templates and built-in seeding."""

    def test_seed_then_refresh(self):
        names = sorted(t["name"] for t in templates.DEFAULT_TEMPLATES)

        first = templates.seed_default_templates()
        assert sorted(first["created"]) == names
        assert first["updated"] == []
        assert len(first["templates"]) == 5

        second = templates.seed_default_templates()
        assert second["created"] == []
        assert sorted(second["updated"]) == names
        assert len(second["templates"]) == 5

    def test_listing_visibility(self):
        templates.seed_default_templates()
        mine = templates.create_template(USER, "Mine", {"cards": []})
        templates.create_template(OTHER, "Theirs", {"cards": []})
        public = templates.create_template(OTHER, "Shared", {"cards": []}, is_public=True)

        assert [t["id"] for t in templates.list_templates(USER)] == [mine["id"]]
        visible = {t["name"] for t in templates.list_templates(USER, include_public=True)}
        assert "Mine" in visible
        assert public["name"] in visible
        assert "Theirs" not in visible
        assert len(visible) == 7

    def test_no_filters(self):
        templates.create_template(USER, "Mine", {})
        assert templates.list_templates() == []

    def test_flags_are_bools(self):
        template = templates.create_template(None, "Anon", {"a": 1}, description="d")
        assert template["is_public"] is False
        assert template["is_default"] is False
        assert template["config"] == {"a": 1}


class TestUsers:
    def test_created_on_first_sight(self):
        assert users.get_user(USER) is None
        user = users.get_or_create_user(USER, privy_id="did:privy:1")
        assert user["privy_id"] == "did:privy:1"
        assert users.get_or_create_user(USER)["created_at"] == user["created_at"]

    def test_update_keeps_unset_fields(self):
        users.update_user(USER, email="a@example.com", wallet_address="0xabc")
        user = users.update_user(USER, email="new@example.com")
        assert user["email"] == "new@example.com"
        assert user["wallet_address"] == "0xabc"

    def test_preferences(self):
        assert users.get_preferences(USER) is None
        stored = users.set_preferences(USER, {"browser": False, "webhookUrl": "https://x.io"})
        assert stored == {"browser": False, "webhookUrl": "https://x.io"}
        assert users.get_preferences(USER) == stored


class TestContent:
    """Themes, comments and journal entries."""

    def test_theme_visibility(self):
        mine = content.create_theme(USER, "Dark", {"bg": "#000"})
        public = content.create_theme(OTHER, "Solar", {"bg": "#fd0"}, is_public=True)
        content.create_theme(OTHER, "Private", {})

        assert [t["id"] for t in content.list_themes(USER)] == [mine["id"]]
        assert {t["name"] for t in content.list_themes(USER, include_public=True)} == {"Dark", "Solar"}
        assert content.get_theme(public["id"], USER) is None
        assert content.get_theme(public["id"], USER, allow_public=True)["config"] == {"bg": "#fd0"}

    def test_theme_update_and_delete(self):
        theme = content.create_theme(USER, "Dark", {})
        assert content.update_theme(theme["id"], OTHER, name="x") is None
        updated = content.update_theme(theme["id"], USER, is_public=True, config={"bg": "#111"})
        assert updated["is_public"] is True
        assert updated["config"] == {"bg": "#111"}
        assert not content.delete_theme(theme["id"], OTHER)
        assert content.delete_theme(theme["id"], USER)

    def test_comments(self):
        users.update_user(USER, email="a@example.com")
        first = content.create_comment(USER, "m1", "first")
        second = content.create_comment(OTHER, "m1", "second")
        content.create_comment(USER, "m2", "elsewhere")

        listed = content.list_comments("m1")
        assert [c["id"] for c in listed] == [second["id"], first["id"]]
        assert listed[1]["email"] == "a@example.com"

        assert content.update_comment(first["id"], "edited")["content"] == "edited"
        content.delete_comment(first["id"])
        assert content.get_comment(first["id"]) is None

    def test_journal_filters(self):
        content.create_journal_entry(USER, "2024-06-01T10:00:00Z", "a", market_id="m1")
        content.create_journal_entry(USER, "2024-06-02T10:00:00Z", "b", market_id="m2")
        content.create_journal_entry(USER, "2024-06-03T10:00:00Z", "c", market_id="m1")
        content.create_journal_entry(OTHER, "2024-06-02T10:00:00Z", "other")

        rows, total = content.list_journal_entries(USER)
        assert total == 3
        assert [r["note"] for r in rows] == ["c", "b", "a"]

        rows, _ = content.list_journal_entries(USER, market_id="m1")
        assert [r["note"] for r in rows] == ["c", "a"]

        rows, total = content.list_journal_entries(
            USER, start="2024-06-02T10:00:00Z", end="2024-06-03T10:00:00Z"
        )
        assert [r["note"] for r in rows] == ["c", "b"]

        rows, total = content.list_journal_entries(USER, limit=1, offset=1)
        assert total == 3
        assert [r["note"] for r in rows] == ["b"]

    def test_journal_json_fields(self):
        entry = content.create_journal_entry(
            USER, "2024-06-01T10:00:00Z", "entry",
            attachments=[{"url": "https://x.io/a.png"}],
            post_mortem={"lesson": "size down"},
        )
        assert entry["attachments"] == [{"url": "https://x.io/a.png"}]
        assert entry["post_mortem"] == {"lesson": "size down"}

        updated = content.update_journal_entry(entry["id"], USER, note="edited", post_mortem=None)
        assert updated["note"] == "edited"
        assert updated["post_mortem"] is None

    def test_journal_owner_scope(self):
        entry = content.create_journal_entry(USER, "2024-06-01T10:00:00Z", "entry")
        assert content.get_journal_entry(entry["id"], OTHER) is None
        assert content.update_journal_entry(entry["id"], OTHER, note="x") is None
        assert not content.delete_journal_entry(entry["id"], OTHER)
        assert content.delete_journal_entry(entry["id"], USER)

"""
Tests for the HTTP API: identity, resource routes, proxies and calculators.
"""

from unittest.mock import AsyncMock, patch

import pytest

from alithos.alerts import PolymarketDataProvider
from alithos.clients.clob_client import OrderBook, OrderBookLevel
from alithos.clients.data_client import parse_position
from alithos.clients.http import UpstreamError

USER_ID = "user-1"
OTHER_USER_ID = "user-2"

ALERT = {
    "name": "Breakout",
    "marketId": "market-1",
    "conditions": [{"type": "price", "operator": "gt", "value": 70}],
    "actions": [{"type": "notify", "config": {"message": "Price above 70%"}}],
}

NOW = 1_700_000_000_000
MINUTE = 60 * 1000
HOUR = 60 * MINUTE


class TestHealthAndIdentity:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_missing_identity(self, client):
        response = client.get("/api/alerts")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_identity_from_query(self, client):
        assert client.get("/api/alerts", params={"userId": USER_ID}).status_code == 200

    def test_validation_errors_grouped_by_field(self, client, auth):
        response = client.post("/api/alerts", json={**ALERT, "conditions": []}, headers=auth)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request body"
        assert "conditions" in body["details"]


class TestAlerts:
    """Alert CRUD and the running alert system."""

    @pytest.fixture
    def created(self, client, auth):
        return client.post("/api/alerts", json=ALERT, headers=auth).json()["alert"]

    def test_create(self, created, services):
        assert created["name"] == "Breakout"
        assert created["marketId"] == "market-1"
        assert created["isActive"] is True
        assert created["cooldownPeriodMinutes"] == 5
        assert services.alert_system.get_alert(created["id"]) is not None

    def test_list_and_get(self, client, auth, other_auth, created):
        listed = client.get("/api/alerts", headers=auth).json()["alerts"]
        assert [a["id"] for a in listed] == [created["id"]]
        assert client.get(f"/api/alerts/{created['id']}", headers=auth).status_code == 200
        assert client.get(f"/api/alerts/{created['id']}", headers=other_auth).status_code == 404

    def test_deactivate_removes_from_system(self, client, auth, created, services):
        response = client.put(f"/api/alerts/{created['id']}", json={"isActive": False}, headers=auth)
        assert response.status_code == 200
        assert response.json()["alert"]["isActive"] is False
        assert response.json()["alert"]["conditions"] == ALERT["conditions"]
        assert services.alert_system.get_alert(created["id"]) is None

    def test_delete(self, client, auth, created, services):
        assert client.delete(f"/api/alerts/{created['id']}", headers=auth).json() == {"success": True}
        assert client.delete(f"/api/alerts/{created['id']}", headers=auth).status_code == 404
        assert services.alert_system.get_alert(created["id"]) is None

    def test_trigger_and_history(self, client, auth, created):
        response = client.patch(f"/api/alerts/{created['id']}/trigger", headers=auth)
        assert response.json()["success"] is True
        assert response.json()["lastTriggered"]

        history = client.get("/api/alerts/history", headers=auth).json()
        assert history["total"] == 1
        assert history["history"][0]["alertId"] == created["id"]
        assert history["history"][0]["alertName"] == "Breakout"

    def test_dry_run(self, client, auth, created, services):
        provider = AsyncMock(spec=PolymarketDataProvider)
        provider.get_price.return_value = 75.0
        services.alert_system.provider = provider

        result = client.post(f"/api/alerts/{created['id']}/test", headers=auth).json()
        assert result["wouldTrigger"] is True
        assert result["conditions"][0]["currentValue"] == 75.0

    def test_templates(self, client, auth):
        templates = client.get("/api/alerts/templates").json()["templates"]
        assert len(templates) == 11

        response = client.post(
            "/api/alerts/templates/volume-spike", params={"marketId": "m9"}, headers=auth
        )
        assert response.status_code == 201
        assert response.json()["alert"]["marketId"] == "m9"
        assert client.post("/api/alerts/templates/missing", headers=auth).status_code == 404

    def test_invalid_webhook_url(self, client, auth):
        body = {**ALERT, "actions": [{"type": "webhook", "config": {"webhookUrl": "not a url"}}]}
        assert client.post("/api/alerts", json=body, headers=auth).status_code == 400


    @pytest.mark.parametrize("body", [
        {"name": None},
        {"conditions": None},
        {"isActive": None},
        {"cooldownPeriodMinutes": None},
    ])
    def test_null_fields_rejected(self, client, auth, created, body):
        response = client.put(f"/api/alerts/{created['id']}", json=body, headers=auth)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_market_id_can_be_cleared(self, client, auth, created):
        response = client.put(f"/api/alerts/{created['id']}", json={"marketId": None}, headers=auth)
        assert response.status_code == 200
        assert response.json()["alert"]["marketId"] is None

    def test_writes_continue_after_rejected_update(self, client, auth, created):
        path = f"/api/alerts/{created['id']}"
        assert client.put(path, json={"name": None}, headers=auth).status_code == 400

        response = client.put(path, json={"cooldownPeriodMinutes": 10}, headers=auth)
        assert response.status_code == 200
        assert response.json()["alert"]["cooldownPeriodMinutes"] == 10
        assert client.post("/api/workspaces", json={"name": "W"}, headers=auth).status_code == 201

class TestWorkspaces:
    """Workspaces, locking and shared layouts."""

    @pytest.fixture
    def workspace(self, client, auth):
        return client.post("/api/workspaces", json={"name": "Desk"}, headers=auth).json()["workspace"]

    def test_create_from_template(self, client, auth):
        seeded = client.post("/api/templates/seed").json()["templates"]
        response = client.post(
            "/api/workspaces",
            json={"name": "Scalp", "type": "SCALPING", "templateId": seeded[0]["id"]},
            headers=auth,
        )
        assert response.status_code == 201
        layouts = response.json()["workspace"]["layouts"]
        assert layouts[0]["name"] == "Default Layout"
        assert layouts[0]["config"] == seeded[0]["config"]

    def test_user_id_in_body(self, client):
        response = client.post("/api/workspaces", json={"name": "Desk", "userId": USER_ID})
        assert response.status_code == 201
        assert response.json()["workspace"]["userId"] == USER_ID

    def test_locked_workspace(self, client, auth, workspace):
        path = f"/api/workspaces/{workspace['id']}"
        client.put(path, json={"locked": True}, headers=auth)

        response = client.put(path, json={"name": "Renamed"}, headers=auth)
        assert response.status_code == 403
        assert response.json()["error"] == "Workspace is locked"

        assert client.put(path, json={"locked": False}, headers=auth).status_code == 200
        assert client.put(path, json={"name": "Renamed"}, headers=auth).json()["workspace"]["name"] == "Renamed"

    def test_null_name_rejected(self, client, auth, workspace):
        response = client.put(f"/api/workspaces/{workspace['id']}", json={"name": None}, headers=auth)
        assert response.status_code == 400
        assert "name" in response.json()["details"]

    def test_other_users_workspace(self, client, other_auth, workspace):
        assert client.get(f"/api/workspaces/{workspace['id']}", headers=other_auth).status_code == 404

    def test_shared_layout(self, client, auth, workspace):
        layout = client.post(
            "/api/layouts",
            json={"workspaceId": workspace["id"], "name": "Main", "config": {"cards": []}, "isShared": True},
            headers=auth,
        ).json()["layout"]
        token = layout["shareToken"]

        shared = client.get(f"/api/layouts/shared/{token}")
        assert shared.status_code == 200
        assert shared.json()["layout"]["config"] == {"cards": []}

        client.put(f"/api/layouts/{layout['id']}", json={"isShared": False}, headers=auth)
        assert client.get(f"/api/layouts/shared/{token}").status_code == 404

    def test_layouts_require_owned_workspace(self, client, other_auth, workspace):
        response = client.post(
            "/api/layouts",
            json={"workspaceId": workspace["id"], "name": "Main", "config": {}},
            headers=other_auth,
        )
        assert response.status_code == 404


class TestTeams:
    """Role checks on team routes."""

    @pytest.fixture
    def team(self, client, auth):
        workspace = client.post("/api/workspaces", json={"name": "Desk"}, headers=auth).json()["workspace"]
        return client.post(
            "/api/teams", json={"workspaceId": workspace["id"], "name": "Desk team"}, headers=auth
        ).json()["team"]

    def test_one_team_per_workspace(self, client, auth, team):
        response = client.post(
            "/api/teams", json={"workspaceId": team["workspaceId"], "name": "Again"}, headers=auth
        )
        assert response.status_code == 400

    def test_non_member_sees_404(self, client, other_auth, team):
        assert client.get(f"/api/teams/{team['id']}", headers=other_auth).status_code == 404

    def test_member_cannot_manage(self, client, auth, other_auth, team):
        client.post(f"/api/teams/{team['id']}/members", json={"userId": OTHER_USER_ID}, headers=auth)

        assert client.get(f"/api/teams/{team['id']}", headers=other_auth).status_code == 200
        response = client.put(f"/api/teams/{team['id']}", json={"name": "Mine now"}, headers=other_auth)
        assert response.status_code == 403
        assert client.delete(f"/api/teams/{team['id']}", headers=other_auth).status_code == 403

    def test_admin_cannot_assign_owner(self, client, auth, other_auth, team):
        client.post(
            f"/api/teams/{team['id']}/members", json={"userId": OTHER_USER_ID, "role": "ADMIN"}, headers=auth
        )
        response = client.post(
            f"/api/teams/{team['id']}/members", json={"userId": "user-3", "role": "OWNER"}, headers=other_auth
        )
        assert response.status_code == 403

    def test_duplicate_member(self, client, auth, team):
        path = f"/api/teams/{team['id']}/members"
        assert client.post(path, json={"userId": OTHER_USER_ID}, headers=auth).status_code == 201
        assert client.post(path, json={"userId": OTHER_USER_ID}, headers=auth).status_code == 400

    def test_cannot_remove_owner(self, client, auth, team):
        response = client.delete(
            f"/api/teams/{team['id']}/members", params={"memberUserId": USER_ID}, headers=auth
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot remove owner"

    def test_member_can_leave(self, client, auth, other_auth, team):
        client.post(f"/api/teams/{team['id']}/members", json={"userId": OTHER_USER_ID}, headers=auth)
        response = client.delete(
            f"/api/teams/{team['id']}/members", params={"memberUserId": OTHER_USER_ID}, headers=other_auth
        )
        assert response.json() == {"success": True}

    def test_role_update(self, client, auth, team):
        path = f"/api/teams/{team['id']}/members"
        client.post(path, json={"userId": OTHER_USER_ID}, headers=auth)
        response = client.patch(path, json={"userId": OTHER_USER_ID, "role": "VIEWER"}, headers=auth)
        assert response.json()["member"]["role"] == "VIEWER"
        missing = client.patch(path, json={"userId": "nobody", "role": "VIEWER"}, headers=auth)
        assert missing.status_code == 404


    def _owners(self, client, auth, team):
        members = client.get(f"/api/teams/{team['id']}/members", headers=auth).json()["members"]
        return [m["userId"] for m in members if m["role"] == "OWNER"]

    def test_admin_cannot_demote_owner(self, client, auth, other_auth, team):
        path = f"/api/teams/{team['id']}/members"
        client.post(path, json={"userId": OTHER_USER_ID, "role": "ADMIN"}, headers=auth)

        response = client.patch(path, json={"userId": USER_ID, "role": "MEMBER"}, headers=other_auth)
        assert response.status_code == 400
        assert self._owners(client, auth, team) == [USER_ID]

    def test_owner_cannot_add_second_owner(self, client, auth, team):
        path = f"/api/teams/{team['id']}/members"
        response = client.post(path, json={"userId": "user-3", "role": "OWNER"}, headers=auth)
        assert response.status_code == 400
        assert self._owners(client, auth, team) == [USER_ID]

    def test_ownership_transfer(self, client, auth, other_auth, team):
        path = f"/api/teams/{team['id']}/members"
        client.post(path, json={"userId": OTHER_USER_ID}, headers=auth)

        response = client.patch(path, json={"userId": OTHER_USER_ID, "role": "OWNER"}, headers=auth)
        assert response.json()["member"]["role"] == "OWNER"
        assert self._owners(client, auth, team) == [OTHER_USER_ID]
        assert client.delete(f"/api/teams/{team['id']}", headers=auth).status_code == 403

class TestTemplates:
    def test_seed(self, client):
        first = client.post("/api/templates/seed").json()
        assert first["totalDefaultTemplates"] == 5
        assert len(first["results"]["created"]) == 5
        second = client.post("/api/templates/seed").json()
        assert len(second["results"]["updated"]) == 5

    def test_list_requires_filter(self, client):
        assert client.get("/api/templates").status_code == 400
        assert client.get("/api/templates", params={"includePublic": "true"}).status_code == 200

    def test_create_requires_fields(self, client):
        response = client.post("/api/templates", json={"name": "Mine"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

        created = client.post("/api/templates", json={"userId": USER_ID, "name": "Mine", "config": {}})
        assert created.status_code == 201


class TestContent:
    """Themes, comments and the journal."""

    def test_comment_author_only(self, client, auth, other_auth):
        comment = client.post(
            "/api/comments", json={"marketId": "m1", "content": "Looks cheap"}, headers=auth
        ).json()["comment"]
        assert comment["user"]["id"] == USER_ID

        path = f"/api/comments/{comment['id']}"
        assert client.put(path, json={"content": "x"}, headers=other_auth).status_code == 403
        assert client.delete(path, headers=other_auth).status_code == 403
        assert client.delete(path, headers=auth).status_code == 200
        assert client.delete(path, headers=auth).status_code == 404

    def test_comments_require_market(self, client):
        assert client.get("/api/comments").status_code == 400

    def test_public_theme_readable(self, client, auth, other_auth):
        theme = client.post(
            "/api/themes", json={"name": "Solar", "config": {"bg": "#fd0"}, "isPublic": True}, headers=auth
        ).json()["theme"]
        response = client.get(f"/api/themes/{theme['id']}", headers=other_auth)
        assert response.json()["theme"]["config"] == {"bg": "#fd0"}
        assert client.put(f"/api/themes/{theme['id']}", json={"name": "x"}, headers=other_auth).status_code == 404

    def test_journal_filters(self, client, auth):
        for day, market in ((1, "m1"), (2, "m2"), (3, "m1")):
            client.post(
                "/api/journal",
                json={"timestamp": f"2024-06-0{day}T10:00:00Z", "note": f"day {day}", "marketId": market},
                headers=auth,
            )

        body = client.get("/api/journal", params={"marketId": "m1"}, headers=auth).json()
        assert [e["note"] for e in body["entries"]] == ["day 3", "day 1"]

        body = client.get(
            "/api/journal",
            params={"startDate": "2024-06-02T00:00:00Z", "endDate": "2024-06-02T23:59:59Z"},
            headers=auth,
        ).json()
        assert body["total"] == 1
        assert body["entries"][0]["note"] == "day 2"

    def test_journal_invalid_date(self, client, auth):
        response = client.get("/api/journal", params={"startDate": "yesterday"}, headers=auth)
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid date range"

    def test_journal_post_mortem_kept_as_sent(self, client, auth):
        entry = client.post(
            "/api/journal",
            json={"timestamp": "2024-06-01T10:00:00Z", "note": "n", "postMortem": {"what_went_wrong": "size"}},
            headers=auth,
        ).json()["entry"]
        assert entry["postMortem"] == {"what_went_wrong": "size"}


class TestUser:
    def test_get_creates_user(self, client, auth):
        user = client.get("/api/user", headers=auth).json()["user"]
        assert user["id"] == USER_ID
        assert user["preferences"]["browser"] is True

    def test_wallet_normalised(self, client, auth):
        wallet = "0x" + "AB" * 20
        user = client.put("/api/user", json={"walletAddress": wallet}, headers=auth).json()["user"]
        assert user["walletAddress"] == wallet.lower()
        assert client.put("/api/user", json={"walletAddress": "0x123"}, headers=auth).status_code == 400

    def test_preferences(self, client, auth):
        body = {"webhook": True, "webhookUrl": "https://example.com/hook"}
        response = client.put("/api/user/preferences", json=body, headers=auth)
        assert response.status_code == 200
        assert response.json()["preferences"]["webhookUrl"] == "https://example.com/hook"
        assert client.get("/api/user/preferences", headers=auth).json()["preferences"]["webhook"] is True

    def test_inconsistent_preferences(self, client, auth):
        response = client.put("/api/user/preferences", json={"telegram": True}, headers=auth)
        assert response.status_code == 400


class TestNotifications:
    def test_telegram_not_configured(self, client):
        response = client.post("/api/notifications/telegram", json={"username": "@trader_1", "message": "hi"})
        assert response.status_code == 500
        assert response.json()["error"] == "Telegram bot not configured"

    def test_email_logged(self, client):
        response = client.post(
            "/api/notifications/email", json={"to": "a@example.com", "subject": "Hi", "body": "Body"}
        )
        assert response.json()["success"] is True

    def test_inbox_scoped_to_user(self, client, auth, services):
        services.alert_system.notifications.append({"title": "t", "body": "mine", "userId": USER_ID})
        services.alert_system.notifications.append({"title": "t", "body": "theirs", "userId": OTHER_USER_ID})
        inbox = client.get("/api/notifications", headers=auth).json()["notifications"]
        assert [n["body"] for n in inbox] == ["mine"]


class TestPolymarket:
    """Proxies with the upstream clients mocked."""

    def test_book(self, client, services):
        book = OrderBook(
            asset_id="tok",
            bids=[OrderBookLevel(0.48, 100)],
            asks=[OrderBookLevel(0.52, 50)],
        )
        with patch.object(services.clob, "get_book", new_callable=AsyncMock, return_value=book):
            response = client.get("/api/polymarket/clob/book", params={"token_id": "tok"})
        assert response.status_code == 200
        assert response.json()["bids"] == [{"price": 0.48, "size": 100}]

    def test_book_requires_token(self, client):
        assert client.get("/api/polymarket/clob/book").status_code == 400

    def test_markets_limit(self, client, services):
        with patch.object(services.gamma, "fetch_markets", new_callable=AsyncMock, return_value=[]) as fetch:
            assert client.get("/api/polymarket/markets", params={"limit": "all"}).json() == []
        assert fetch.call_args.kwargs["limit"] is None
        assert client.get("/api/polymarket/markets", params={"limit": "0"}).status_code == 400

    def test_market_not_found(self, client, services):
        error = UpstreamError("Gamma API", 404, "Not found")
        with patch.object(services.gamma, "get_market_raw", new_callable=AsyncMock, side_effect=error):
            response = client.get("/api/polymarket/market/123")
        assert response.status_code == 404
        assert response.json()["error"] == "Market not found"

    def test_upstream_status_passed_through(self, client, services):
        error = UpstreamError("CLOB API", 502, "Bad gateway")
        with patch.object(services.clob, "get_book", new_callable=AsyncMock, side_effect=error):
            response = client.get("/api/polymarket/clob/book", params={"token_id": "tok"})
        assert response.status_code == 502
        assert response.json()["error"] == "Bad gateway"


class TestPositions:
    """Wallet positions and history with the Data-API mocked."""

    WALLET = "0x" + "ab" * 20

    POSITION = {
        "conditionId": "0xcond",
        "outcome": "Yes",
        "outcomeIndex": 0,
        "size": 100,
        "avgPrice": 0.4,
        "initialValue": 40,
        "currentValue": 55,
        "curPrice": 0.55,
        "realizedPnl": 2,
        "title": "Will it rain?",
        "slug": "will-it-rain",
        "endDate": "2025-01-01",
    }

    ACTIVITY = [
        {
            "type": "TRADE", "conditionId": "0xcond", "outcomeIndex": 0, "side": "BUY",
            "size": 10, "price": 0.5, "usdcSize": 5, "timestamp": 1700000000,
            "transactionHash": "0xaaa", "title": "Will it rain?", "slug": "will-it-rain",
        },
        {
            "type": "TRADE", "conditionId": "0xcond", "outcomeIndex": 1, "side": "SELL",
            "size": 4, "price": 0.6, "usdcSize": 2.4, "timestamp": 1700000100,
            "transactionHash": "0xbbb", "title": "Will it rain?", "slug": "will-it-rain",
        },
    ]

    def test_positions_with_pnl(self, client, services):
        with patch.object(services.data_api, "_request", new_callable=AsyncMock, return_value=[self.POSITION]) as request:
            response = client.get("/api/positions", params={"userAddress": self.WALLET.upper().replace("0X", "0x")})

        assert response.status_code == 200
        position = response.json()["positions"][0]
        assert position["marketId"] == "0xcond"
        assert position["outcome"] == "YES"
        assert position["costBasis"] == 40
        assert position["unrealizedPnL"] == 15
        assert position["realizedPnL"] == 2
        assert position["entryPrice"] == 0.4
        assert position["market"] == {"question": "Will it rain?", "slug": "will-it-rain", "endDate": "2025-01-01"}
        assert request.call_args.kwargs["params"] == {"user": self.WALLET}

    def test_positions_without_market(self, client, services):
        with patch.object(services.data_api, "_request", new_callable=AsyncMock, return_value=[self.POSITION]):
            response = client.get("/api/positions", params={"userAddress": self.WALLET, "includeMarket": "false"})
        position = response.json()["positions"][0]
        assert "market" not in position
        assert "entryPrice" not in position

    def test_positions_require_valid_address(self, client):
        missing = client.get("/api/positions")
        assert missing.status_code == 400
        assert missing.json()["error"] == "Invalid query parameters"
        assert client.get("/api/positions", params={"userAddress": "0x123"}).status_code == 400

    def test_value_falls_back_to_prices(self):
        position = parse_position({"conditionId": "0xcond", "outcome": "No", "size": 50, "avgPrice": 0.2, "curPrice": 0.3})
        assert position.outcome == "NO"
        assert position.cost_basis == pytest.approx(10)
        assert position.current_value == pytest.approx(15)
        assert position.unrealized_pnl == pytest.approx(5)

    def test_history_filters_outcome(self, client, services):
        with patch.object(services.data_api, "_request", new_callable=AsyncMock, return_value=self.ACTIVITY) as request:
            response = client.get(
                "/api/positions/history",
                params={"userAddress": self.WALLET, "outcome": "YES", "marketId": "0xcond", "limit": 10},
            )

        body = response.json()
        assert body["total"] == 1
        assert body["limit"] == 10
        entry = body["history"][0]
        assert entry["id"] == "0xaaa"
        assert entry["side"] == "BUY"
        assert entry["timestamp"] == "2023-11-14T22:13:20+00:00"
        params = request.call_args.kwargs["params"]
        assert params["market"] == "0xcond"
        assert params["limit"] == 10

    def test_history_uses_stored_wallet(self, client, auth, services):
        client.put("/api/user", json={"walletAddress": self.WALLET}, headers=auth)
        with patch.object(services.data_api, "_request", new_callable=AsyncMock, return_value=[]) as request:
            response = client.get("/api/positions/history", headers=auth)
        assert response.json()["history"] == []
        assert request.call_args.kwargs["params"]["user"] == self.WALLET

    def test_history_requires_wallet(self, client, auth):
        response = client.get("/api/positions/history", headers=auth)
        assert response.status_code == 400
        assert response.json()["error"] == "Wallet address required"

    def test_history_invalid_date(self, client):
        response = client.get(
            "/api/positions/history", params={"userAddress": self.WALLET, "startDate": "yesterday"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid date range"


class TestNews:
    def test_newsapi_requires_keywords(self, client):
        assert client.get("/api/newsapi-ai").status_code == 400

    def test_newsapi_requires_key(self, client):
        response = client.get("/api/newsapi-ai", params={"keywords": "Nvidia"})
        assert response.status_code == 401
        assert response.json()["error"] == "API key not configured"

    def test_adjacent_requires_market(self, client):
        response = client.get("/api/adjacent-news/news")
        assert response.status_code == 400
        assert response.json()["error"] == "Market query parameter is required"

    def test_adjacent_requires_key(self, client):
        response = client.get("/api/adjacent-news/news", params={"market": "Fed"})
        assert response.status_code == 401

    def test_adjacent_rejected_key(self, client, config):
        config.news.adjacent_news_key = "bad"
        error = UpstreamError("Adjacent News API", 403, "Forbidden")
        with patch(
            "alithos.api.routes.news.AdjacentNewsClient.get_market_news",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            response = client.get("/api/adjacent-news/news", params={"market": "Fed"})
        assert response.status_code == 403
        assert response.json()["error"].startswith("API key missing or invalid")

    def test_keywords(self, client):
        body = client.get(
            "/api/news/keywords", params={"question": "Will Tesla deliver 2M cars in 2025?"}
        ).json()
        assert "Tesla" in body["keywords"]
        assert body["company"]["ticker"] == "TSLA"


class TestAnomalies:
    def test_compute_and_query(self, client):
        trades = [
            {"id": f"h{k}", "marketId": "m1", "outcome": "YES", "amount": 100, "price": 0.5,
             "timestamp": NOW - k * HOUR - 150000}
            for k in range(1, 21)
        ]
        trades.append({"id": "spike", "marketId": "m1", "outcome": "YES", "amount": 5000,
                       "price": 0.5, "timestamp": NOW - MINUTE})

        body = client.post("/api/anomalies/compute", json={"trades": trades, "now": NOW}).json()
        assert "volume-spike" in {a["type"] for a in body["anomalies"]}
        assert body["anomalies"][0]["marketId"] == "m1"
        assert body["heatScores"][0]["band"] in ("calm", "mild", "hot", "on-fire")

        queried = client.get("/api/anomalies", params={"types": "volume-spike"}).json()
        assert queried["total"] >= 1
        assert client.get("/api/anomalies/heat", params={"marketId": "m1"}).json()["heatScores"]

        assert client.delete("/api/anomalies").json() == {"success": True}
        assert client.get("/api/anomalies").json()["total"] == 0

    def test_invalid_filter(self, client):
        assert client.get("/api/anomalies", params={"severity": "catastrophic"}).status_code == 400


class TestCalculators:
    def test_kelly(self, client):
        body = client.post("/api/calculators/kelly", json={"belief": 0.6, "entry": 0.5, "fee": 0}).json()
        assert body["breakEven"] == pytest.approx(50)
        assert body["isPositiveEv"] is True
        assert body["kellyFraction"] > 0

    def test_kelly_out_of_range(self, client):
        assert client.post("/api/calculators/kelly", json={"belief": 1.2, "entry": 0.5}).status_code == 400

    def test_odds(self, client):
        body = client.post("/api/calculators/odds", json={"decimal": 4}).json()
        assert body["probability"] == pytest.approx(0.25)
        assert body["us"] == pytest.approx(300)

    def test_odds_needs_exactly_one(self, client):
        assert client.post("/api/calculators/odds", json={"decimal": 4, "us": 300}).status_code == 400

    def test_position_size(self, client):
        response = client.post(
            "/api/calculators/position-size",
            json={"bankroll": 1000, "belief": 0.6, "entry": 0.5, "riskLevel": "conservative"},
        )
        assert response.status_code == 200
        assert 0 <= response.json()["riskOfRuin"] <= 100

    def test_liquidity(self, client):
        body = client.post(
            "/api/calculators/liquidity",
            json={"bids": [{"price": 0.48, "size": 1000}], "asks": [{"price": 0.52, "size": 1000}]},
        ).json()
        assert body["metrics"]["midPrice"] == pytest.approx(0.5)
        assert body["impacts"] is not None

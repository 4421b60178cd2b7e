"""
Workspace layout templates, including the built-in defaults.
"""
from contextlib import closing
from typing import Any, Optional

from .db import dump_json, get_connection, new_id, now_iso, row_to_dict

BOOL_FIELDS = ("is_public", "is_default")


def _card(card_type: str, x: int, y: int, w: int, h: int, min_w: int, min_h: int) -> dict:
    card_id = f"{card_type}-1"
    return {
        "id": card_id,
        "type": card_type,
        "layout": {"i": card_id, "x": x, "y": y, "w": w, "h": h, "minW": min_w, "minH": min_h},
    }


def _default(
    key: str,
    name: str,
    description: str,
    workspace_type: str,
    cards: list[dict]
) -> dict:
    return {
        "name": name,
        "description": description,
        "workspace_type": workspace_type,
        "config": {"id": f"default-{key}", "name": name, "cards": cards},
    }


DEFAULT_TEMPLATES = [
    _default(
        "scalping", "Scalping Workspace",
        "Optimized for fast trading with market discovery, tape, order book, and quick ticket",
        "SCALPING",
        [
            _card("market-discovery", 0, 0, 4, 8, 2, 4),
            _card("tape", 4, 0, 4, 8, 3, 4),
            _card("orderbook", 8, 0, 4, 8, 3, 4),
            _card("quick-ticket", 0, 8, 4, 6, 2, 4),
            _card("depth", 4, 8, 4, 6, 3, 4),
            _card("positions", 8, 8, 4, 6, 2, 4),
        ],
    ),
    _default(
        "event-day", "Event Day Workspace",
        "Perfect for event-driven trading with market discovery, news, and research tools",
        "EVENT_DAY",
        [
            _card("market-discovery", 0, 0, 6, 10, 4, 6),
            _card("news", 6, 0, 6, 6, 4, 4),
            _card("market-research", 6, 6, 6, 4, 4, 3),
            _card("chart", 0, 10, 6, 6, 4, 4),
            _card("quick-ticket", 6, 10, 6, 6, 3, 4),
        ],
    ),
    _default(
        "arb-desk", "Arbitrage Desk",
        "Designed for arbitrage opportunities with correlation matrix, exposure tree, and activity scanner",
        "ARB_DESK",
        [
            _card("correlation-matrix", 0, 0, 6, 8, 4, 6),
            _card("exposure-tree", 6, 0, 6, 8, 4, 6),
            _card("activity-scanner", 0, 8, 6, 6, 4, 4),
            _card("positions", 6, 8, 6, 6, 3, 4),
        ],
    ),
    _default(
        "research", "Research Workspace",
        "Focused on market research with discovery, info, research tools, and news",
        "RESEARCH",
        [
            _card("market-discovery", 0, 0, 6, 10, 4, 6),
            _card("market-info", 6, 0, 6, 5, 4, 3),
            _card("market-research", 6, 5, 6, 5, 4, 3),
            _card("news", 0, 10, 6, 6, 4, 4),
            _card("chart", 6, 10, 6, 6, 4, 4),
            _card("journal", 0, 16, 12, 4, 4, 3),
        ],
    ),
    _default(
        "starter", "Starter Workspace",
        "A simple starter template with market discovery, tape, and quick ticket",
        "CUSTOM",
        [
            _card("market-discovery", 0, 0, 4, 6, 2, 3),
            _card("tape", 4, 0, 4, 6, 2, 3),
            _card("quick-ticket", 8, 0, 4, 6, 2, 3),
        ],
    ),
]


def _row(row) -> Optional[dict]:
    return row_to_dict(row, json_fields=("config",), bool_fields=BOOL_FIELDS)


def get_template(template_id: str) -> Optional[dict]:
    with closing(get_connection()) as conn:
        row = conn.execute("SELECT * FROM templates WHERE id = ?", (template_id,)).fetchone()
    return _row(row)


def list_templates(user_id: Optional[str] = None, include_public: bool = False) -> list[dict]:
    """
    A user's templates, optionally with public and built-in ones.
    With no user, only public and built-in templates are returned.
    """
    clauses = []
    params = []
    if user_id:
        clauses.append("user_id = ?")
        params.append(user_id)
    if include_public:
        clauses.append("is_public = 1 OR is_default = 1")
    if not clauses:
        return []

    with closing(get_connection()) as conn:
        rows = conn.execute(
            f"SELECT * FROM templates WHERE {' OR '.join(clauses)} ORDER BY created_at DESC, rowid DESC",
            params
        ).fetchall()
    return [_row(row) for row in rows]


def create_template(
    user_id: Optional[str],
    name: str,
    config: Any,
    description: Optional[str] = None,
    is_public: bool = False,
    is_default: bool = False
) -> dict:
    template_id = new_id()
    now = now_iso()
    with closing(get_connection()) as conn, conn:
        conn.execute("""
            INSERT INTO templates (id, user_id, name, description, config, is_public, is_default,
                                   created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            template_id, user_id, name, description, dump_json(config),
            int(is_public), int(is_default), now, now
        ))
    return get_template(template_id)


def seed_default_templates() -> dict:
    """
    Insert or refresh the built-in templates, matched by name.

    Returns:
        {"created": [...names], "updated": [...names], "templates": [rows]}
    """
    created = []
    updated = []
    now = now_iso()

    with closing(get_connection()) as conn, conn:
        cursor = conn.cursor()
        cursor.execute("SELECT id, name FROM templates WHERE is_default = 1")
        existing = {row["name"]: row["id"] for row in cursor.fetchall()}

        for template in DEFAULT_TEMPLATES:
            template_id = existing.get(template["name"])
            if template_id:
                cursor.execute("""
                    UPDATE templates SET description = ?, config = ?, user_id = NULL, updated_at = ?
                    WHERE id = ?
                """, (template["description"], dump_json(template["config"]), now, template_id))
                updated.append(template["name"])
            else:
                cursor.execute("""
                    INSERT INTO templates (id, user_id, name, description, config, is_public, is_default,
                                           created_at, updated_at)
                    VALUES (?, NULL, ?, ?, ?, 0, 1, ?, ?)
                """, (
                    new_id(), template["name"], template["description"],
                    dump_json(template["config"]), now, now
                ))
                created.append(template["name"])

        cursor.execute("SELECT * FROM templates WHERE is_default = 1 ORDER BY name")
        rows = cursor.fetchall()

    return {"created": created, "updated": updated, "templates": [_row(row) for row in rows]}

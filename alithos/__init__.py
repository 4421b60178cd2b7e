"""
Alithos Terminal backend

A Polymarket trading terminal API:

1. API SERVER (alithos.api.server)
   - Entry point: python -m alithos.api.server
   - Per-user workspaces, layouts, alerts, teams, themes, comments, journal
   - Read-only proxies over the Polymarket Gamma, CLOB and Data APIs

2. ALERT LOOP (alithos.alerts)
   - Multi-condition market alerts checked on a fixed interval
   - Browser, email, Telegram and webhook notifications

Key Modules:
- alithos.pricing: Odds conversions, Kelly sizing, AMM and order book math
- alithos.anomaly: Trade and order book anomaly detectors, heat scores
- alithos.clients: Upstream HTTP clients
- alithos.notifications: Webhook, Telegram and email delivery
- alithos.news: Keyword extraction for market news search
- alithos.storage: SQLite persistence
"""

__version__ = "0.1.0"

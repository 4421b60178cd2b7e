"""
Upstream API clients: Polymarket Gamma, CLOB and Data-API, and NewsAPI.ai.

Import the client modules directly; this package does not re-export them
because the Gamma and Data-API clients build anomaly-engine types.
"""

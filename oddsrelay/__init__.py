"""
Kambi Odds Relay.

Polls the Kambi offering API for live and upcoming matches, normalizes
every bet offer into a short canonical code and relays one snapshot per
poll cycle to websocket subscribers.

Layout:
- feeds/: Upstream HTTP client and the shared permit pool
- engine/: Outcome classification, match processing, per-sport pollers
- relay/: Distribution channel, websocket relay and a demo client
- models/: Raw payloads, normalized records, error taxonomy
"""

__version__ = "0.1.0"

"""Outbound HTTP helpers shared by provider clients."""

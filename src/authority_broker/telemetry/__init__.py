"""Telemetry for authority-broker.

- system/: operational JSON logger (system.jsonl)
- audit/: authentication audit trail (auth.jsonl)
- models/: pydantic models for audit events
"""

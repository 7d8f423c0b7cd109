"""Test suite for the formsteps form engine.

This package contains tests for:
- Schema parsing, envelopes and field variants
- Schema cache and HTTP loader (fetch counting, in-flight sharing, staleness)
- Field validation rules per type and role
- Form state, section navigation, and submission
- Event stream and configuration
- End-to-end session scenarios against a fake form API
"""

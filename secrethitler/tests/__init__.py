"""Tests for the Secret Hitler server."""

"""Realtime presence and call signalling core of the task board."""

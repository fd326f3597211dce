"""
Tests for mbtileserver.
"""

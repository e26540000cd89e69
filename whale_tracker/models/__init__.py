"""Data models shared across the whale tracker."""

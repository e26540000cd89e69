"""Utility helpers for the whale tracker."""

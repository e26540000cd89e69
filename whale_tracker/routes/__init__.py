"""API routers of the whale tracker."""

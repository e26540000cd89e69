"""Background services of the whale tracker."""

"""Internal models not exposed outside the controller."""

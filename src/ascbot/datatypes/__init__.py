"""Plain data structures shared across ascbot packages."""

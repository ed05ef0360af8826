"""Registry signup lifecycle service."""

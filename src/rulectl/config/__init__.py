"""Configuration: rulectl.toml sections, unified settings, logging."""

class ConfigError(ValueError):
    """Stack configuration that cannot describe a valid spoke."""

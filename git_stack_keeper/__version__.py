"""Version information for git-stack-keeper."""

try:
    from importlib.metadata import PackageNotFoundError, version
    __version__ = version("git-stack-keeper")
except PackageNotFoundError:
    # Running from source without an installed distribution
    __version__ = "0.0.0+unknown"

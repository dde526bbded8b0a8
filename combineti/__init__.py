"""Football match data core: fixtures, rosters, injuries and AI betting suggestions."""

__version__ = "0.1.0"

"""depversions: dependency version conflict checker for Maven projects."""

__version__ = "1.0.0"

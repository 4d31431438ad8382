"""Post-hoc query tool for persisted bundler asset and bundle graphs."""

__version__ = "0.1.0"

"""App Operator — reconciles App custom resources into Helm releases."""

__version__ = "0.1.0"

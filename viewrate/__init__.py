"""View-rate tracker — polls view counts, classifies rates, dispatches alerts."""

__version__ = "0.1.0"

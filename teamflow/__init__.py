"""TeamFlow - run software projects with a team of model-backed agents."""

__version__ = "0.1.0"

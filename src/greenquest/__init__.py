"""GreenQuest: challenge progression and reward ranking engine."""

__version__ = "0.1.0"

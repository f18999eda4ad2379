"""commitbench: benchmark a command across a repository's commit history."""

__version__ = "0.1.0"

"""Portfolio Agent: conversational assistant over products, projects and developers."""

__version__ = "0.1.0"

"""Living Loom: consciousness metrics, memory chains and reflection for chat sessions"""

__version__ = "0.1.0"

"""agentdeck - run and control AI coding-agent CLIs as managed terminal sessions"""

__version__ = "0.1.0"

"""
fleetexec - fleet remote-execution orchestrator.

Resolves a set of target machines, dispatches one command per platform
group through AWS Systems Manager, polls every target to a terminal
state and reports per-target outcomes. Exposed as a CLI and as an MCP
server.
"""

__version__ = "0.1.0"

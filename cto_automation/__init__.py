# =============================================================================
# CTO AUTOMATION
# =============================================================================
"""
CTO Automation

An autonomous agent that polls a Notion kanban board, implements one task
per run through a tool-calling LLM loop, opens a GitHub pull request and
reports the outcome back to the board.

Packages:
    - notion: Board reading and task mutations
    - github: Branches, commits, pull requests, repository content
    - engine: LLM clients, tool registry, agent loop, task workflow
    - tools: The agent's tool surface
"""

__version__ = "1.0.0"

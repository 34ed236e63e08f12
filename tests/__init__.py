# =============================================================================
# CTO AUTOMATION - TEST PACKAGE
# =============================================================================
"""
Test Package

Test Structure:
    tests/
    ├── conftest.py                  # In-memory board/repository hosts, fixtures
    ├── test_credentials.py          # Token caching and connector lookup
    ├── test_github_client.py        # HTTP layer and error mapping
    ├── test_repository.py           # Branch, commit, PR, content operations
    ├── test_board.py                # Property extraction, block flattening
    ├── test_tools.py                # Tool registry and tool payloads
    ├── test_development_tools.py    # Placeholder code intelligence
    ├── test_agent_loop.py           # Step budget, planners, LLM conversion
    ├── test_workflow.py             # Response parsing and report step
    ├── test_end_to_end.py           # Scripted runs against in-memory hosts
    ├── test_config.py               # YAML/env configuration and service wiring
    └── test_monitoring.py           # Logging, audit trail, metrics

Running Tests:
    pytest tests/ -v
    pytest tests/ --cov=cto_automation --cov=monitoring
"""

# =============================================================================
# CTO AUTOMATION - DEVELOPMENT TOOLS
# =============================================================================
"""
Development Tools

Codebase analysis, implementation planning, test running and quality
validation, behind the ``CodeIntelligenceProvider`` interface.

The shipped provider, ``PlaceholderCodeIntelligence``, performs no real
analysis: it returns fixed, schema-conforming structures marked
``"simulated": True`` so the agent (and anyone reading the audit trail)
can tell them apart from real results. A real provider can be swapped
in through ``register_development_tools(registry, provider)``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from cto_automation.engine.tools import ToolRegistry


logger = logging.getLogger(__name__)


PRIORITIES = ["low", "medium", "high", "critical"]
COMPLEXITIES = ["simple", "moderate", "complex", "enterprise"]
TEST_TYPES = ["unit", "integration", "e2e", "all"]
QUALITY_CHECKS = ["syntax", "style", "security", "performance", "all"]


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================

class CodeIntelligenceProvider(ABC):
    """Capability interface for the four development tools."""

    @abstractmethod
    async def analyze_codebase(
        self, repository_path: str, focus_areas: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Return ``{structure, patterns, recommendations}``."""

    @abstractmethod
    async def implement_code_changes(
        self,
        task_description: str,
        requirements: str,
        target_files: Optional[List[str]] = None,
        repository_context: str = "",
        priority: str = "medium",
        complexity: str = "moderate",
        test_requirements: bool = True,
    ) -> Dict[str, Any]:
        """Return ``{implementationResult, qualityAssurance, nextSteps}``."""

    @abstractmethod
    async def run_code_tests(
        self,
        test_type: str,
        target_files: Optional[List[str]] = None,
        coverage: bool = True,
    ) -> Dict[str, Any]:
        """Return ``{testResults, status, recommendations}``."""

    @abstractmethod
    async def validate_code_quality(
        self, file_paths: List[str], checks: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Return ``{qualityScore, issues, summary, recommendations}``."""


# =============================================================================
# PLACEHOLDER PROVIDER
# =============================================================================

class PlaceholderCodeIntelligence(CodeIntelligenceProvider):
    """Deterministic stand-in used until a real provider is configured."""

    async def analyze_codebase(self, repository_path, focus_areas=None):
        focus_areas = focus_areas or []
        logger.info(f"Simulated codebase analysis of {repository_path} (focus: {focus_areas})")

        return {
            "simulated": True,
            "structure": {
                "directories": ["src/", "tests/", "docs/"],
                "keyFiles": ["README.md"],
                "technologies": [],
                "frameworks": [],
            },
            "patterns": {
                "architectureStyle": "unknown (simulated analysis)",
                "codingStandards": [],
                "commonPatterns": [],
                "testingApproach": "unknown (simulated analysis)",
            },
            "recommendations": [
                "Inspect the repository with getRepositoryContent before changing code",
                "Follow the conventions of the files being modified",
            ] + [f"Review focus area: {area}" for area in focus_areas],
        }

    async def implement_code_changes(
        self,
        task_description,
        requirements,
        target_files=None,
        repository_context="",
        priority="medium",
        complexity="moderate",
        test_requirements=True,
    ):
        if priority not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}")
        if complexity not in COMPLEXITIES:
            raise ValueError(f"complexity must be one of {COMPLEXITIES}")

        target_files = target_files or []
        logger.info(
            f"Simulated implementation plan for {task_description[:100]!r} "
            f"({len(target_files)} target file(s), {priority}/{complexity})"
        )

        files_modified = [
            {
                "path": path,
                "action": "modified",
                "content": "",
                "description": f"Planned change for: {task_description[:80]}",
            }
            for path in target_files
        ]
        code_changes = [
            {"file": path, "changeDescription": "Planned change", "linesAdded": 0, "linesModified": 0}
            for path in target_files
        ]

        next_steps = [
            "Write the file contents and commit them with commitCode",
            "Open a pull request with createPullRequest",
        ]
        if test_requirements:
            next_steps.insert(1, "Add or update tests and run them with runCodeTests")

        return {
            "simulated": True,
            "implementationResult": {
                "taskType": "feature",
                "filesModified": files_modified,
                "codeChanges": code_changes,
                "status": "partial",
                "summary": (
                    "Simulated plan only: no code was generated. "
                    f"{len(target_files)} file(s) identified for change."
                ),
            },
            "qualityAssurance": {
                "safeguards": ["No files were written by this tool"],
                "codeReviewPoints": ["Verify every acceptance criterion is covered"],
                "testingRecommendations": (
                    ["Cover the new behavior with unit tests"] if test_requirements else []
                ),
            },
            "nextSteps": next_steps,
        }

    async def run_code_tests(self, test_type, target_files=None, coverage=True):
        if test_type not in TEST_TYPES:
            raise ValueError(f"testType must be one of {TEST_TYPES}")

        target_files = target_files or []
        logger.info(f"Simulated {test_type} test run over {len(target_files)} file(s)")

        details = [
            {"file": path, "status": "passed", "message": "Simulated result"}
            for path in target_files
        ]
        test_results: Dict[str, Any] = {
            "passed": len(details),
            "failed": 0,
            "total": len(details),
            "details": details,
        }
        if coverage:
            test_results["coverage"] = 0

        return {
            "simulated": True,
            "testResults": test_results,
            "status": "success",
            "recommendations": ["Run the real test suite in CI before merging"],
        }

    async def validate_code_quality(self, file_paths, checks=None):
        checks = checks or ["all"]
        unknown = [c for c in checks if c not in QUALITY_CHECKS]
        if unknown:
            raise ValueError(f"Unknown quality checks: {unknown}")

        logger.info(f"Simulated quality validation of {len(file_paths)} file(s), checks={checks}")

        return {
            "simulated": True,
            "qualityScore": 100,
            "issues": [],
            "summary": {"errors": 0, "warnings": 0, "passed": True},
            "recommendations": ["Run the project's linters in CI before merging"],
        }


# =============================================================================
# TOOL SCHEMAS
# =============================================================================

TOOL_SCHEMAS = {
    "analyzeCodebase": {
        "name": "analyzeCodebase",
        "description": "Analyze existing codebase structure and patterns to understand architecture and identify integration points",
        "parameters": {
            "type": "object",
            "properties": {
                "repositoryPath": {"type": "string", "description": "Path to the repository root"},
                "focusAreas": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific areas or files to focus the analysis on",
                },
            },
            "required": ["repositoryPath"],
        },
    },
    "implementCodeChanges": {
        "name": "implementCodeChanges",
        "description": "Plan code changes for a task based on existing patterns",
        "parameters": {
            "type": "object",
            "properties": {
                "taskDescription": {"type": "string", "description": "Description of the feature or fix to implement"},
                "requirements": {"type": "string", "description": "Detailed requirements and acceptance criteria"},
                "targetFiles": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific files that need to be modified",
                },
                "repositoryContext": {"type": "string", "description": "Current repository context and architecture"},
                "priority": {"type": "string", "enum": PRIORITIES, "default": "medium"},
                "complexity": {"type": "string", "enum": COMPLEXITIES, "default": "moderate"},
                "testRequirements": {
                    "type": "boolean",
                    "default": True,
                    "description": "Whether to include test implementation",
                },
            },
            "required": ["taskDescription", "requirements"],
        },
    },
    "runCodeTests": {
        "name": "runCodeTests",
        "description": "Run tests for implemented code to ensure quality and functionality",
        "parameters": {
            "type": "object",
            "properties": {
                "testType": {"type": "string", "enum": TEST_TYPES, "description": "Type of tests to run"},
                "targetFiles": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Specific test files to run",
                },
                "coverage": {"type": "boolean", "default": True, "description": "Generate code coverage report"},
            },
            "required": ["testType"],
        },
    },
    "validateCodeQuality": {
        "name": "validateCodeQuality",
        "description": "Validate code quality, standards compliance, and best practices",
        "parameters": {
            "type": "object",
            "properties": {
                "filePaths": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Paths to files to validate",
                },
                "checks": {
                    "type": "array",
                    "items": {"type": "string", "enum": QUALITY_CHECKS},
                    "default": ["all"],
                    "description": "Types of quality checks to perform",
                },
            },
            "required": ["filePaths"],
        },
    },
}


def register_development_tools(
    registry: ToolRegistry, provider: Optional[CodeIntelligenceProvider] = None
) -> CodeIntelligenceProvider:
    """Register the four development tools backed by ``provider``."""
    provider = provider or PlaceholderCodeIntelligence()

    registry.register(TOOL_SCHEMAS["analyzeCodebase"], provider.analyze_codebase)
    registry.register(TOOL_SCHEMAS["implementCodeChanges"], provider.implement_code_changes)
    registry.register(TOOL_SCHEMAS["runCodeTests"], provider.run_code_tests)
    registry.register(TOOL_SCHEMAS["validateCodeQuality"], provider.validate_code_quality)

    return provider


__all__ = [
    "CodeIntelligenceProvider",
    "PlaceholderCodeIntelligence",
    "TOOL_SCHEMAS",
    "register_development_tools",
]

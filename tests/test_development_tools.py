"""Tests for the placeholder code-intelligence tools."""

import pytest

from cto_automation.engine.llm import ToolCall
from cto_automation.engine.tools import ToolRegistry
from cto_automation.tools.development_tools import (
    CodeIntelligenceProvider,
    PlaceholderCodeIntelligence,
    register_development_tools,
)


@pytest.fixture
def provider():
    return PlaceholderCodeIntelligence()


@pytest.mark.asyncio
async def test_analysis_is_marked_simulated(provider):
    result = await provider.analyze_codebase("/repo", focus_areas=["auth"])

    assert result["simulated"] is True
    assert set(result) >= {"structure", "patterns", "recommendations"}
    assert "Review focus area: auth" in result["recommendations"]


@pytest.mark.asyncio
async def test_implementation_plan_is_partial(provider):
    result = await provider.implement_code_changes(
        "Add dark mode", "Theme toggle in settings", target_files=["src/theme.css", "src/app.js"],
    )

    impl = result["implementationResult"]
    assert impl["status"] == "partial"
    assert [f["path"] for f in impl["filesModified"]] == ["src/theme.css", "src/app.js"]
    assert any("runCodeTests" in step for step in result["nextSteps"])


@pytest.mark.asyncio
async def test_implementation_without_tests(provider):
    result = await provider.implement_code_changes("x", "y", test_requirements=False)

    assert result["qualityAssurance"]["testingRecommendations"] == []
    assert not any("runCodeTests" in step for step in result["nextSteps"])


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [{"priority": "urgent"}, {"complexity": "trivial"}])
async def test_implementation_rejects_unknown_enums(provider, kwargs):
    with pytest.raises(ValueError):
        await provider.implement_code_changes("x", "y", **kwargs)


@pytest.mark.asyncio
async def test_run_tests(provider):
    result = await provider.run_code_tests("unit", target_files=["tests/test_a.py"])

    assert result["status"] == "success"
    assert result["testResults"]["passed"] == 1
    assert result["testResults"]["coverage"] == 0

    no_coverage = await provider.run_code_tests("e2e", coverage=False)
    assert "coverage" not in no_coverage["testResults"]


@pytest.mark.asyncio
async def test_run_tests_rejects_unknown_type(provider):
    with pytest.raises(ValueError):
        await provider.run_code_tests("smoke")


@pytest.mark.asyncio
async def test_quality_validation(provider):
    result = await provider.validate_code_quality(["src/app.js"], checks=["style", "security"])

    assert result["qualityScore"] == 100
    assert result["issues"] == []
    assert result["summary"]["passed"] is True

    with pytest.raises(ValueError):
        await provider.validate_code_quality(["src/app.js"], checks=["vibes"])


@pytest.mark.asyncio
async def test_registry_routes_camel_case_arguments(provider):
    registry = ToolRegistry()
    register_development_tools(registry, provider)

    result = await registry.execute(ToolCall(
        id="c1",
        name="runCodeTests",
        arguments={"testType": "integration", "targetFiles": ["a.py", "b.py"], "coverage": False},
    ))

    assert result.success
    assert result.output["testResults"]["total"] == 2


@pytest.mark.asyncio
async def test_invalid_enum_via_registry_is_error_result(provider):
    registry = ToolRegistry()
    register_development_tools(registry, provider)

    result = await registry.execute(ToolCall(id="c1", name="runCodeTests", arguments={"testType": "smoke"}))

    assert not result.success
    assert "testType" in result.error


@pytest.mark.asyncio
async def test_custom_provider_is_used():
    class Fixed(PlaceholderCodeIntelligence):
        async def validate_code_quality(self, file_paths, checks=None):
            return {"qualityScore": 42, "issues": [], "summary": {}, "recommendations": []}

    registry = ToolRegistry()
    provider = register_development_tools(registry, Fixed())

    result = await registry.execute(ToolCall(id="c1", name="validateCodeQuality", arguments={"filePaths": []}))

    assert isinstance(provider, CodeIntelligenceProvider)
    assert result.output["qualityScore"] == 42

"""
Integration tests for the TaskPilot MCP server tools.

The tool functions are called directly; FastMCP registration leaves them
plain callables.
"""

import asyncio
import json

import pytest

import main
from tests.fakes import FakeAssistantClient, fenced


@pytest.fixture
def project(tmp_path):
    assert main.init_tasks(root=str(tmp_path))["success"]
    return tmp_path


@pytest.fixture
def scripted_assistant(monkeypatch):
    assistant = FakeAssistantClient()
    monkeypatch.setattr("taskpilot.workflow.OpenAIAssistantClient", lambda config: assistant)
    return assistant


class TestRootResolution:
    """Integration tests for locating the project root."""

    def test_explicit_root_must_exist(self, tmp_path):
        with pytest.raises(ValueError, match="does not exist"):
            main.list_tasks(root=str(tmp_path / "missing"))

    def test_env_root(self, project, monkeypatch):
        monkeypatch.setenv("TASKPILOT_PROJECT_ROOT", str(project))

        assert main.list_tasks()["success"]

    def test_detects_tasks_file_in_parent(self, project, monkeypatch):
        nested = project / "src" / "pkg"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        main.add_task(title="Found from a subdirectory")

        assert json.loads((project / "tasks.json").read_text())[0]["title"] == "Found from a subdirectory"

    def test_no_root_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ValueError, match="Unable to find tasks.json"):
            main.list_tasks()

    def test_init_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = main.init_tasks()

        assert result["success"]
        assert (tmp_path / "tasks.json").exists()
        assert (tmp_path / "tasks").is_dir()


class TestTaskWorkflowIntegration:
    """End-to-end flow through the MCP tools."""

    def test_manual_workflow(self, project):
        root = str(project)
        main.add_task(title="Set up repo", priority="high", root=root)
        main.add_task(title="Build API", description="REST endpoints", dependencies=[1], root=root)
        main.add_task(title="Write docs", priority="low", root=root)

        first = main.next_task(start=True, root=root)
        assert first["task"]["id"] == 1
        assert first["started"]

        ready = main.ready_tasks(root=root)
        assert [t["id"] for t in ready["ready"]] == [1, 3]
        assert ready["blocked"][0]["id"] == 2

        main.set_task_status(1, "done", root=root)
        assert main.next_task(root=root)["task"]["id"] == 2

        tree = main.task_tree(root=root)["tree"]
        assert tree.splitlines()[0] == "Pending (2)"
        assert "Done (1)" in tree

        details = main.show_task_details(2, root=root)
        assert "## Dependencies\n1" in details["content"]

        assert (project / "tasks" / "task-1.json").exists()

    def test_complexity_tools(self, project):
        root = str(project)
        main.add_task(title="A", root=root)
        main.add_task(title="B", priority="high", root=root)

        assert main.update_task_complexity(1, "complex", 4.5, root=root)["success"]
        assert main.set_dependencies(1, [2], root=root)["success"]
        assert main.get_task(1, root=root)["task"]["complexity"]["score"] == 4.5

        assert main.assess_task_complexity(1, root=root)["complexity"]["score"] == pytest.approx(2.5)

        ranking = main.assess_all_tasks_complexity(root=root)["tasks_by_complexity"]
        assert [t["id"] for t in ranking] == [2, 1]

    def test_errors_are_returned_not_raised(self, project):
        result = main.set_task_status(12, "done", root=str(project))

        assert result["success"] is False
        assert result["error_kind"] == "NotFound"

    def test_list_tasks_filter(self, project):
        root = str(project)
        main.add_task(title="A", root=root)
        main.add_task(title="B", root=root)
        main.set_task_status(2, "deferred", root=root)

        assert [t["id"] for t in main.list_tasks(status="deferred", root=root)["tasks"]] == [2]


class TestAssistantToolsIntegration:
    """Integration tests for the assistant-backed tools."""

    def test_prd_to_subtasks(self, project, scripted_assistant):
        root = str(project)
        scripted_assistant.responses = [
            fenced('[{"id": 1, "title": "Catalog", "description": "Product list", "priority": "high"},'
                   ' {"id": 2, "title": "Cart", "description": "Cart page", "dependencies": [1]}]'),
            fenced('[{"title": "Schema"}, {"title": "Endpoints"}, {"title": "UI"}]'),
            fenced('{"complexity": {"level": "moderate", "score": 3, "factors": []}}'),
        ]

        parsed = asyncio.run(main.parse_prd("# Shop\nSell things.", prd_name="shop.md", root=root))
        expanded = asyncio.run(main.expand_task(1, num_subtasks=3, root=root))
        assessed = asyncio.run(main.assess_task_complexity_with_ai(2, root=root))

        assert parsed["task_ids"] == [1, 2]
        assert [s["id"] for s in expanded["subtasks"]] == [1, 2, 3]
        assert assessed["complexity"]["source"] == "assistant"

        stored = json.loads((project / "tasks.json").read_text())
        assert len(stored[0]["subtasks"]) == 3
        assert stored[1]["complexity"]["score"] == 3

    def test_add_task_with_ai(self, project, scripted_assistant):
        scripted_assistant.responses = [fenced('{"title": "Login", "description": "Email login"}')]

        result = asyncio.run(main.add_task_with_ai("users need to sign in", root=str(project)))

        assert result["task"]["title"] == "Login"
        assert '"users need to sign in"' in scripted_assistant.last_prompt


class TestTasksResource:
    """Integration tests for the taskpilot://tasks resource."""

    def test_resource_renders_tree(self, project, monkeypatch):
        monkeypatch.chdir(project)
        main.add_task(title="Visible")

        text = main.resource_tasks()

        assert text.startswith("TaskPilot Tasks")
        assert "1: Visible [pending | Priority: medium]" in text

    def test_resource_without_project(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert "No tasks file detected" in main.resource_tasks()

"""Prompt builders for the external assistant.

Each prompt asks for exactly one fenced JSON block in a shape that the
matching parser in ``taskpilot.parsing`` accepts.
"""

from __future__ import annotations

import textwrap
from typing import List

from .models import Task


def _next_task_id(existing_tasks: List[Task]) -> int:
    return max((task.id for task in existing_tasks), default=0) + 1


def generate_parse_prd_prompt(prd_name: str, prd_text: str, existing_tasks: List[Task]) -> str:
    """Prompt for breaking a PRD into tasks."""
    start_id = _next_task_id(existing_tasks)
    return textwrap.dedent(
        f"""\
        Analyze the following PRD (Product Requirements Document) named "{prd_name}".
        Extract the key tasks that need to be implemented according to the PRD.

        --- BEGIN PRD ---
        {{prd_text}}
        --- END PRD ---

        For each task, create a JSON object with the following structure:
        - id: A unique numeric ID (start from {start_id})
        - title: A concise, descriptive title
        - description: A detailed description of what needs to be done
        - status: "pending" (for all new tasks)
        - priority: "low", "medium", or "high" based on your assessment
        - dependencies: An array of task IDs this task depends on (empty array for now)
        - subtasks: An empty array (will be populated later)
        - details: Additional information or context for the task (optional)

        Return a JSON array of task objects and nothing else.

        Example response format:
        ```json
        [
          {{
            "id": {start_id},
            "title": "Implement user authentication",
            "description": "Set up user authentication with registration, login, and password reset",
            "status": "pending",
            "priority": "high",
            "dependencies": [],
            "subtasks": [],
            "details": "Will use JWT for authentication tokens"
          }}
        ]
        ```"""
    ).replace("{prd_text}", prd_text.strip())


def generate_expand_task_prompt(task: Task, num_subtasks: int) -> str:
    """Prompt for breaking one task into ``num_subtasks`` subtasks."""
    details = f"Details: {task.details}\n" if task.details else ""
    return (
        f"Break down the following task into {num_subtasks} subtasks:\n\n"
        f"Task ID: {task.id}\n"
        f"Title: {task.title}\n"
        f"Description: {task.description}\n"
        f"{details}"
        "\n"
        "For each subtask, specify:\n"
        "- title: A concise title\n"
        '- status: "pending" (for all new subtasks)\n'
        "\n"
        "Return a JSON array of subtask objects, without IDs (they'll be assigned automatically):\n"
        "\n"
        "Example response format:\n"
        "```json\n"
        "[\n"
        '  {\n    "title": "Design database schema",\n    "status": "pending"\n  },\n'
        '  {\n    "title": "Implement API endpoints",\n    "status": "pending"\n  }\n'
        "]\n"
        "```"
    )


def generate_add_task_prompt(task_description: str, existing_tasks: List[Task]) -> str:
    """Prompt for turning a free-text description into one task object."""
    references = "\n".join(
        f"- ID {task.id}: {task.title} ({task.status.value})" for task in existing_tasks
    ) or "- (no tasks yet)"
    return (
        f'Create a new task based on this description: "{task_description}"\n\n'
        "Use the following fields:\n"
        "- title: A concise, descriptive title\n"
        "- description: A detailed description of what needs to be done\n"
        '- status: "pending"\n'
        '- priority: "low", "medium", or "high" based on your assessment\n'
        "- dependencies: An array of IDs of tasks this depends on\n"
        "- details: Additional information or context (optional)\n\n"
        "Existing tasks you can reference for dependencies:\n"
        f"{references}\n\n"
        "Return a single JSON object and nothing else:\n\n"
        "Example response format:\n"
        "```json\n"
        "{\n"
        '  "title": "Implement user profile page",\n'
        '  "description": "Create a user profile page with editable fields and avatar upload",\n'
        '  "status": "pending",\n'
        '  "priority": "medium",\n'
        '  "dependencies": [1, 2],\n'
        '  "details": "Should include form validation"\n'
        "}\n"
        "```"
    )


def generate_complexity_assessment_prompt(task: Task) -> str:
    """Prompt asking the assistant for a complexity assessment of ``task``."""
    details = f"Details: {task.details}\n" if task.details else ""
    dependencies = ", ".join(str(dep) for dep in task.dependencies) or "None"
    return (
        "I need to assess the complexity of the following task:\n\n"
        f"Task ID: {task.id}\n"
        f"Title: {task.title}\n"
        f"Description: {task.description}\n"
        f"{details}"
        f"Priority: {task.priority.value}\n"
        f"Dependencies: {dependencies}\n"
        f"Subtasks: {len(task.subtasks)}\n\n"
        "On a scale from 1-5, how complex is this task? Please consider:\n"
        "1. Technical complexity\n"
        "2. Time estimation\n"
        "3. Dependencies\n"
        "4. Required knowledge/expertise\n"
        "5. Potential risks\n\n"
        "Format your response as a JSON object with the following structure:\n"
        "```json\n"
        "{\n"
        '  "complexity": {\n'
        '    "level": "simple|moderate|complex|veryComplex",\n'
        '    "score": <number between 1-5>,\n'
        '    "factors": [\n'
        "      {\n"
        '        "name": "<factor name>",\n'
        '        "weight": <number between 0-1>,\n'
        '        "description": "<why this factor contributes to complexity>"\n'
        "      }\n"
        "    ]\n"
        "  }\n"
        "}\n"
        "```"
    )

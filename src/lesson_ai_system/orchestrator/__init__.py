"""Orchestrator module for model routing, retries and lesson generation."""

from lesson_ai_system.orchestrator.retry_handler import RetryHandler
from lesson_ai_system.orchestrator.router import RoutingTable, TaskRouter, TaskType

__all__ = ["RetryHandler", "RoutingTable", "TaskRouter", "TaskType"]

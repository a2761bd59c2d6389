"""Presentation layer - outputs and human-friendly formatting."""

from .outputs import KeyFileSink, render
from .human_formatter import format_plan, format_apply_report, format_state, format_outputs

__all__ = ["KeyFileSink", "render", "format_plan", "format_apply_report", "format_state", "format_outputs"]

"""Thin HTTP surface over InspectionWorkflow."""

from inspection_api.app import create_app

__all__ = ["create_app"]

"""Workflow engine components.

- Settings loaded from .env
- Structured logging
- Definition models, validation and storage
- The step-by-step session core
- A service facade shared by the CLI and both servers
"""

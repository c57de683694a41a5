"""
Shared module for common utilities used by the signaling gateway.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging and session audit trail

- shared.infrastructure: HTTP plumbing
  - correlation.py: Request IDs and connection tags for logs

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.utils.exceptions import NotFoundError, ValidationError
"""

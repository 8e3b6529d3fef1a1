"""
Shared module for common utilities across the floor API.

- shared.config: settings (pydantic-settings), structured logging, domain enums
- shared.infrastructure: SQLAlchemy sessions, safe_commit(), Redis events, metrics
- shared.security: request rate limiting
- shared.utils: HTTP exceptions with auto-logging, response envelope schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import TableState, SessionStatus
    from shared.utils.exceptions import NotFoundError, ConflictError
"""

"""
Shared module for common utilities used by the shop API and the CLI.

STRUCTURE:
- shared.security: Back-office access, rate limiting
  - admin.py: X-Admin-Key dependency
  - rate_limit.py: slowapi limiter

- shared.infrastructure: Database and request plumbing
  - db.py: SQLAlchemy sessions, transaction(), safe_commit()
  - correlation.py: X-Request-ID middleware and logging filter

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Sizes, order modes, statuses, limits

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - schemas.py: Pydantic request/response models

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, transaction
    from shared.config.settings import settings
    from shared.config.constants import OrderMode, OrderStatus
    from shared.utils.exceptions import NotFoundError, InsufficientStockError
    from shared.security.admin import require_admin
"""

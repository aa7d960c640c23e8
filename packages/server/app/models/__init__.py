# SQLModel tables, imported here so create_all and Alembic see the full metadata.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .team import Team, TeamSettings  # noqa: F401
from .user import User  # noqa: F401
from .role import Role  # noqa: F401
from .permission import Permission, RolePermission  # noqa: F401
from .membership import Membership  # noqa: F401

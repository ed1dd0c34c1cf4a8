import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import DateTime, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, MappedAsDataclass, mapped_column


class UUIDMixin(MappedAsDataclass):
    """Mixin to add a UUID primary key to database models.

    The UUID is generated client-side with ``uuid4()``, with PostgreSQL's
    ``gen_random_uuid()`` as a server-side fallback. The field is excluded
    from dataclass initialization (``init=False``) so callers never assign
    identities themselves.

    Attributes:
        id: The UUID primary key.

    Example:
        ```python
        class MyModel(Base, UUIDMixin):
            __tablename__ = "my_models"
            name: Mapped[str] = mapped_column(String(100))

        model = MyModel(name="example")
        # model.id is set at construction
        ```
    """

    id: Mapped[uuid_pkg.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default_factory=uuid_pkg.uuid4,
        server_default=text("gen_random_uuid()"),
        init=False,
    )


class CreatedAtMixin(MappedAsDataclass):
    """Mixin for an immutable, timezone-aware ``created_at`` column.

    Rows in this application are never updated in place (they are replaced
    as a set), so there is no ``updated_at`` counterpart. The column is
    excluded from ``__init__`` and marked non-updatable at the ORM level.

    Attributes:
        created_at: UTC timestamp set once when the row is persisted.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(UTC),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
        init=False,
        index=True,
    )

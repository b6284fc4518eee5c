"""SQLAlchemy (async) store for PostgreSQL or SQLite."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    or_,
    select,
    update,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from mcp_registry.models.errors import DuplicateServerError
from mcp_registry.models.registry import (
    AuthType,
    HealthMetric,
    Server,
    ServerMetadata,
    ServerRegistration,
    ServerStatus,
    ServerType,
    Tool,
    ToolInvocation,
    utcnow,
)
from mcp_registry.storage.base import Store
from mcp_registry.utils.logging import get_logger

logger = get_logger(__name__)


def _enum(enum_cls: type, name: str) -> SAEnum:
    return SAEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


class Base(DeclarativeBase):
    pass


class ServerRow(Base):
    __tablename__ = "mcp_servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    server_type: Mapped[ServerType] = mapped_column(_enum(ServerType, "server_type"), nullable=False)
    endpoint_url: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[ServerStatus] = mapped_column(
        _enum(ServerStatus, "server_status"), nullable=False, default=ServerStatus.ACTIVE
    )
    version: Mapped[str | None] = mapped_column(String(50))
    last_health_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    auth_type: Mapped[AuthType | None] = mapped_column(_enum(AuthType, "auth_type"))
    auth_username: Mapped[str | None] = mapped_column(String(255))
    auth_password: Mapped[str | None] = mapped_column(String(512))
    auth_token: Mapped[str | None] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ToolRow(Base):
    __tablename__ = "tools"
    __table_args__ = (UniqueConstraint("server_id", "name", name="uq_tools_server_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[int] = mapped_column(
        ForeignKey("mcp_servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    input_schema: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    category: Mapped[str | None] = mapped_column(String(100), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ServerMetadataRow(Base):
    __tablename__ = "server_metadata"

    server_id: Mapped[int] = mapped_column(ForeignKey("mcp_servers.id", ondelete="CASCADE"), primary_key=True)
    author: Mapped[str | None] = mapped_column(String(255))
    repository_url: Mapped[str | None] = mapped_column(String(512))
    documentation_url: Mapped[str | None] = mapped_column(String(512))
    tags: Mapped[list[str] | None] = mapped_column(JSON)


class HealthMetricRow(Base):
    __tablename__ = "server_health_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[int] = mapped_column(
        ForeignKey("mcp_servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    status_code: Mapped[int | None] = mapped_column(Integer)
    error_message: Mapped[str | None] = mapped_column(Text)
    checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )


class ToolInvocationRow(Base):
    __tablename__ = "tool_invocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[int] = mapped_column(
        ForeignKey("mcp_servers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tool_id: Mapped[int] = mapped_column(ForeignKey("tools.id", ondelete="CASCADE"), nullable=False)
    invoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    duration_ms: Mapped[int | None] = mapped_column(Integer)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)


def _utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _server(row: ServerRow) -> Server:
    return Server(
        id=row.id,
        name=row.name,
        display_name=row.display_name,
        description=row.description,
        server_type=row.server_type,
        endpoint_url=row.endpoint_url,
        status=row.status,
        version=row.version,
        last_health_check=_utc(row.last_health_check),
        auth_type=row.auth_type,
        auth_username=row.auth_username,
        auth_password=row.auth_password,
        auth_token=row.auth_token,
        created_at=_utc(row.created_at),
        updated_at=_utc(row.updated_at),
    )


def _tool(row: ToolRow) -> Tool:
    return Tool(
        id=row.id,
        server_id=row.server_id,
        name=row.name,
        description=row.description,
        input_schema=row.input_schema,
        category=row.category,
        created_at=_utc(row.created_at),
    )


class SqlStore(Store):
    """
    Store backed by SQLAlchemy's async engine.

    Each method runs in its own session; no statement spans two calls.
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        self.engine: AsyncEngine = create_async_engine(database_url, echo=echo)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False, class_=AsyncSession)

    async def init_schema(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready", url=self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        await self.engine.dispose()

    # --- registry ---

    async def get_server_by_id(self, server_id: int) -> Server | None:
        async with self.session_factory() as session:
            row = await session.get(ServerRow, server_id)
            return _server(row) if row else None

    async def get_tool_by_server_and_name(self, server_id: int, name: str) -> Tool | None:
        async with self.session_factory() as session:
            row = await session.scalar(
                select(ToolRow).where(ToolRow.server_id == server_id, ToolRow.name == name)
            )
            return _tool(row) if row else None

    async def get_tool_by_id(self, tool_id: int) -> Tool | None:
        async with self.session_factory() as session:
            row = await session.get(ToolRow, tool_id)
            return _tool(row) if row else None

    async def get_active_servers(self) -> list[Server]:
        async with self.session_factory() as session:
            rows = await session.scalars(
                select(ServerRow).where(ServerRow.status == ServerStatus.ACTIVE).order_by(ServerRow.id)
            )
            return [_server(row) for row in rows]

    async def update_server_status(self, server_id: int, status: ServerStatus, checked_at: datetime) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(ServerRow)
                .where(ServerRow.id == server_id)
                .values(status=status, last_health_check=checked_at, updated_at=utcnow())
            )
            await session.commit()

    async def create_server(self, registration: ServerRegistration) -> Server:
        async with self.session_factory() as session:
            row = ServerRow(
                name=registration.name,
                display_name=registration.display_name,
                description=registration.description,
                server_type=registration.server_type,
                endpoint_url=registration.endpoint_url,
                status=ServerStatus.ACTIVE,
                version=registration.version,
                auth_type=registration.auth_type,
                auth_username=registration.auth_username,
                auth_password=registration.auth_password,
                auth_token=registration.auth_token,
            )
            session.add(row)
            try:
                await session.flush()

                if registration.metadata is not None:
                    meta = registration.metadata
                    session.add(
                        ServerMetadataRow(
                            server_id=row.id,
                            author=meta.author,
                            repository_url=str(meta.repository_url) if meta.repository_url else None,
                            documentation_url=str(meta.documentation_url) if meta.documentation_url else None,
                            tags=meta.tags,
                        )
                    )

                session.add_all(
                    ToolRow(
                        server_id=row.id,
                        name=tool.name,
                        description=tool.description,
                        input_schema=tool.input_schema,
                        category=tool.category,
                    )
                    for tool in registration.tools
                )
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateServerError(registration.name) from e

            return _server(row)

    async def list_servers(
        self,
        status: ServerStatus | None = None,
        server_type: ServerType | None = None,
        search: str | None = None,
    ) -> list[Server]:
        query = select(ServerRow)
        if status is not None:
            query = query.where(ServerRow.status == status)
        if server_type is not None:
            query = query.where(ServerRow.server_type == server_type)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(ServerRow.name.ilike(pattern), ServerRow.display_name.ilike(pattern)))

        async with self.session_factory() as session:
            rows = await session.scalars(query.order_by(ServerRow.created_at, ServerRow.id))
            return [_server(row) for row in rows]

    async def list_tools(self, server_id: int) -> list[Tool]:
        async with self.session_factory() as session:
            rows = await session.scalars(
                select(ToolRow).where(ToolRow.server_id == server_id).order_by(ToolRow.id)
            )
            return [_tool(row) for row in rows]

    async def count_tools_by_server(self) -> dict[int, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ToolRow.server_id, func.count(ToolRow.id)).group_by(ToolRow.server_id)
            )
            return {server_id: count for server_id, count in result.all()}

    async def get_server_metadata(self, server_id: int) -> ServerMetadata | None:
        async with self.session_factory() as session:
            row = await session.get(ServerMetadataRow, server_id)
            if row is None:
                return None
            return ServerMetadata(
                server_id=row.server_id,
                author=row.author,
                repository_url=row.repository_url,
                documentation_url=row.documentation_url,
                tags=row.tags,
            )

    async def search_servers(self, query: str, limit: int = 20) -> list[Server]:
        pattern = f"%{query}%"
        async with self.session_factory() as session:
            rows = await session.scalars(
                select(ServerRow)
                .where(
                    or_(
                        ServerRow.name.ilike(pattern),
                        ServerRow.display_name.ilike(pattern),
                        ServerRow.description.ilike(pattern),
                    )
                )
                .order_by(ServerRow.id)
                .limit(limit)
            )
            return [_server(row) for row in rows]

    async def search_tools(self, query: str, limit: int = 20) -> list[tuple[Tool, Server]]:
        pattern = f"%{query}%"
        async with self.session_factory() as session:
            result = await session.execute(
                select(ToolRow, ServerRow)
                .join(ServerRow, ToolRow.server_id == ServerRow.id)
                .where(
                    or_(
                        ToolRow.name.ilike(pattern),
                        ToolRow.description.ilike(pattern),
                        ToolRow.category.ilike(pattern),
                    )
                )
                .order_by(ToolRow.id)
                .limit(limit)
            )
            return [(_tool(tool), _server(server)) for tool, server in result.all()]

    async def list_categories(self) -> list[tuple[str, int]]:
        tool_count = func.count(ToolRow.id)
        async with self.session_factory() as session:
            result = await session.execute(
                select(ToolRow.category, tool_count)
                .where(ToolRow.category.is_not(None))
                .group_by(ToolRow.category)
                .order_by(tool_count.desc())
            )
            return [(category, count) for category, count in result.all()]

    async def list_tools_by_category(self, category: str) -> list[tuple[Tool, Server]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ToolRow, ServerRow)
                .join(ServerRow, ToolRow.server_id == ServerRow.id)
                .where(ToolRow.category == category)
                .order_by(ToolRow.id)
            )
            return [(_tool(tool), _server(server)) for tool, server in result.all()]

    # --- metrics ---

    async def insert_health_metric(self, metric: HealthMetric) -> HealthMetric:
        async with self.session_factory() as session:
            row = HealthMetricRow(
                server_id=metric.server_id,
                response_time_ms=metric.response_time_ms,
                status_code=metric.status_code,
                error_message=metric.error_message,
                checked_at=metric.checked_at,
            )
            session.add(row)
            await session.commit()
            return metric.model_copy(update={"id": row.id})

    async def insert_tool_invocation(self, invocation: ToolInvocation) -> ToolInvocation:
        async with self.session_factory() as session:
            row = ToolInvocationRow(
                server_id=invocation.server_id,
                tool_id=invocation.tool_id,
                duration_ms=invocation.duration_ms,
                success=invocation.success,
                invoked_at=invocation.invoked_at,
            )
            session.add(row)
            await session.commit()
            return invocation.model_copy(update={"id": row.id})

    async def list_health_metrics(self, since: datetime, server_id: int | None = None) -> list[HealthMetric]:
        query = select(HealthMetricRow).where(HealthMetricRow.checked_at >= since)
        if server_id is not None:
            query = query.where(HealthMetricRow.server_id == server_id)

        async with self.session_factory() as session:
            rows = await session.scalars(query.order_by(HealthMetricRow.checked_at, HealthMetricRow.id))
            return [
                HealthMetric(
                    id=row.id,
                    server_id=row.server_id,
                    response_time_ms=row.response_time_ms,
                    status_code=row.status_code,
                    error_message=row.error_message,
                    checked_at=_utc(row.checked_at),
                )
                for row in rows
            ]

    async def list_tool_invocations(
        self, since: datetime, server_id: int | None = None
    ) -> list[ToolInvocation]:
        query = select(ToolInvocationRow).where(ToolInvocationRow.invoked_at >= since)
        if server_id is not None:
            query = query.where(ToolInvocationRow.server_id == server_id)

        async with self.session_factory() as session:
            rows = await session.scalars(query.order_by(ToolInvocationRow.invoked_at, ToolInvocationRow.id))
            return [
                ToolInvocation(
                    id=row.id,
                    server_id=row.server_id,
                    tool_id=row.tool_id,
                    duration_ms=row.duration_ms or 0,
                    success=row.success,
                    invoked_at=_utc(row.invoked_at),
                )
                for row in rows
            ]

"""Role and permission repository."""

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, insert, select

from crmvault.infrastructure.database.models.role import Permission, Role, RolePermission
from crmvault.infrastructure.database.repositories.base import BaseRepository
from crmvault.infrastructure.database.repositories.hierarchy import RoleHierarchyRepository
from crmvault.shared.exceptions import ConflictError
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)


class RoleRepository(BaseRepository[Role]):
    """Repository for roles and their permissions."""

    model_class = Role

    async def get_by_name(self, name: str) -> Role | None:
        result = await self.session.execute(self._base_query().where(Role.name == name))
        return result.scalar_one_or_none()

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        *,
        is_global: bool = False,
        is_superuser: bool = False,
    ) -> Role:
        if await self.get_by_name(name) is not None:
            raise ConflictError(f"Role '{name}' already exists", {"name": name})
        role = await self.create(
            Role(
                name=name,
                description=description,
                is_global=is_global,
                is_superuser=is_superuser,
            )
        )
        logger.info("role_created", role_id=str(role.id), name=name)
        return role

    async def delete_role(self, role: Role) -> None:
        """Delete a role and detach it from the role hierarchy."""
        await RoleHierarchyRepository(self.session).remove_node(role.id)
        await self.session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await self.delete(role)
        logger.info("role_deleted", role_id=str(role.id))

    # ----- Permissions -----

    async def get_permission_by_name(self, name: str) -> Permission | None:
        result = await self.session.execute(select(Permission).where(Permission.name == name))
        return result.scalar_one_or_none()

    async def create_permission(
        self,
        resource: str,
        action: str,
        description: str | None = None,
    ) -> Permission:
        """Create a ``resource.action`` permission."""
        name = f"{resource}.{action}"
        if await self.get_permission_by_name(name) is not None:
            raise ConflictError(f"Permission '{name}' already exists", {"name": name})
        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=description,
        )
        self.session.add(permission)
        await self.session.flush()
        return permission

    async def get_permissions(self, role_id: UUID) -> Sequence[Permission]:
        """Permissions granted directly to one role."""
        query = (
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.name)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def permission_names_for_roles(self, role_ids: Iterable[UUID]) -> set[str]:
        """Union of permission names over ``role_ids``."""
        ids = list(role_ids)
        if not ids:
            return set()
        query = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id.in_(ids))
            .distinct()
        )
        result = await self.session.execute(query)
        return set(result.scalars().all())

    async def assign_permissions(self, role_id: UUID, permission_ids: Iterable[UUID]) -> None:
        """Replace the permission set of a role."""
        ids = list(dict.fromkeys(permission_ids))
        async with self.session.begin_nested():
            await self.session.execute(
                delete(RolePermission).where(RolePermission.role_id == role_id)
            )
            if ids:
                await self.session.execute(
                    insert(RolePermission),
                    [{"role_id": role_id, "permission_id": pid} for pid in ids],
                )
        logger.info("role_permissions_assigned", role_id=str(role_id), count=len(ids))

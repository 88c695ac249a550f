"""Foreign-reference checks shared by the article and comment services."""
from sqlalchemy.ext.asyncio import AsyncSession

from blog_backend.models import Category, User
from blog_backend.outcomes import ServiceResult


async def load_active_user(db: AsyncSession, user_id: int | None) -> ServiceResult[User]:
    user = await db.get(User, user_id) if user_id is not None else None
    if user is None:
        return ServiceResult.validation(f"Unknown user: {user_id}")
    if user.is_deleted or not user.is_active:
        return ServiceResult.validation("User account is deleted or inactive")
    return ServiceResult.ok(user)


async def load_active_category(db: AsyncSession, category_id: int) -> ServiceResult[Category]:
    category = await db.get(Category, category_id)
    if category is None:
        return ServiceResult.validation(f"Invalid category id: {category_id} does not exist")
    if category.is_deleted:
        return ServiceResult.validation(f"Invalid category: {category_id} has been deleted")
    return ServiceResult.ok(category)

from __future__ import annotations

from medlab.platform.filtering import FilterField, MatchKind
from medlab.platform.repository import SoftDeleteRepository
from medlab.users.models import User, UserRole


USER_FILTER_FIELDS: tuple[FilterField, ...] = (
    FilterField("first_name", MatchKind.PARTIAL, User.first_name),
    FilterField("last_name", MatchKind.PARTIAL, User.last_name),
    FilterField("username", MatchKind.EXACT, User.username),
    FilterField("hospital_id", MatchKind.PARTIAL, User.hospital_id),
    FilterField("email", MatchKind.EXACT, User.email),
    FilterField("role", MatchKind.MEMBER, User.role_links, member_column=UserRole.role),
    FilterField("gender", MatchKind.EXACT, User.gender),
    FilterField("deleted", MatchKind.DELETED, User.deleted),
)


class UserRepository(SoftDeleteRepository[User]):
    model = User
    filter_fields = USER_FILTER_FIELDS

"""
User Service: user creation, lookup and global role management.

Login and sessions are outside this application; users are provisioned
through the ``flask create-user`` command (or an upstream identity system)
and identified on each request by their JWT.
"""

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.auth import VALID_ROLES, Role, User, UserRole

ROLE_DISPLAY_NAMES = {
    "hr_manager": "HR Manager",
    "ceo": "CEO",
    "consultant": "Consultant",
    "admin": "Administrator",
}


def normalize_email(email: str) -> str:
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError("Invalid email", {"email": str(e)}) from e


def seed_roles() -> list[Role]:
    """Ensure every global role row exists.  Idempotent; flushes only."""
    roles = []
    for name in sorted(VALID_ROLES):
        role = Role.query.filter_by(name=name).first()
        if role is None:
            role = Role(name=name, display_name=ROLE_DISPLAY_NAMES.get(name, name))
            db.session.add(role)
        roles.append(role)
    db.session.flush()
    return roles


def create_user(email: str, full_name: str = None, role_names: list[str] = None,
                status: str = "active") -> User:
    """Create a user with the given global roles."""
    email = normalize_email(email)
    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email)

    unknown = [r for r in (role_names or []) if r not in VALID_ROLES]
    if unknown:
        raise ValidationError("Unknown role", {"roles": f"not a role: {', '.join(unknown)}"})

    user = User(email=email, full_name=full_name, status=status)
    db.session.add(user)
    db.session.flush()  # Get user.id before assigning roles

    if role_names:
        seed_roles()
        for rn in role_names:
            role = Role.query.filter_by(name=rn).first()
            db.session.add(UserRole(user_id=user.id, role_id=role.id))

    db.session.commit()
    return user


def get_user_by_email(email: str) -> User | None:
    """Find a user by email."""
    return User.query.filter_by(email=normalize_email(email)).first()


def get_user_by_id(user_id: int) -> User | None:
    """Find a user by ID."""
    return db.session.get(User, user_id)


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign a global role to a user."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    if role_name not in VALID_ROLES:
        raise ValidationError("Unknown role", {"role": f"not a role: {role_name}"})

    seed_roles()
    role = Role.query.filter_by(name=role_name).first()

    existing = UserRole.query.filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        raise ConflictError("UserRole", "role", role_name)

    ur = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(ur)
    db.session.commit()
    return ur

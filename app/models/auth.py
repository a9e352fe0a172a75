"""
Auth Models: companies, users, roles, company memberships.

A Company is the tenant boundary: every HR project, answer set, audit row and
membership hangs off exactly one company.  Global roles (hr_manager, ceo,
consultant, admin) live on the user; CompanyMember records which users belong
to which company and in what capacity.
"""

from datetime import datetime, timezone

from app.models import db

ROLE_HR_MANAGER = "hr_manager"
ROLE_CEO = "ceo"
ROLE_CONSULTANT = "consultant"
ROLE_ADMIN = "admin"

VALID_ROLES = frozenset({ROLE_HR_MANAGER, ROLE_CEO, ROLE_CONSULTANT, ROLE_ADMIN})

# Roles a user can hold inside a company (admins act platform-wide).
VALID_MEMBER_ROLES = frozenset({ROLE_HR_MANAGER, ROLE_CEO, ROLE_CONSULTANT})


# ═══════════════════════════════════════════════════════════════
# 1. COMPANIES
# ═══════════════════════════════════════════════════════════════
class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    brand_name = db.Column(db.String(200))
    industry = db.Column(db.String(200))
    foundation_date = db.Column(db.Date)
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "CompanyMember", back_populates="company", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    hr_project = db.relationship(
        "HrProject", back_populates="company", uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_members=False):
        d = {
            "id": self.id,
            "name": self.name,
            "brand_name": self.brand_name,
            "industry": self.industry,
            "foundation_date": self.foundation_date.isoformat() if self.foundation_date else None,
            "created_by_id": self.created_by_id,
            "hr_project_id": self.hr_project.id if self.hr_project else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_members:
            d["members"] = [m.to_dict() for m in self.members.all()]
        return d


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    status = db.Column(db.String(20), default="active")  # active, invited, inactive
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user_roles = db.relationship(
        "UserRole", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="UserRole.user_id",
    )
    memberships = db.relationship(
        "CompanyMember", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="CompanyMember.user_id",
    )

    def to_dict(self, include_roles=False):
        d = {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_roles:
            d["roles"] = self.role_names
        return d

    @property
    def role_names(self):
        """List of global role names for this user."""
        return [ur.role.name for ur in self.user_roles.all()]

    def has_role(self, *names):
        return any(name in self.role_names for name in names)

    @property
    def display_name(self):
        return self.full_name or self.email


# ═══════════════════════════════════════════════════════════════
# 3. ROLES
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    display_name = db.Column(db.String(200))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    user_roles = db.relationship("UserRole", back_populates="role", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
        }


# ═══════════════════════════════════════════════════════════════
# 4. USER_ROLES (Junction table)
# ═══════════════════════════════════════════════════════════════
class UserRole(db.Model):
    __tablename__ = "user_roles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role_id = db.Column(
        db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False
    )
    assigned_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
    )

    user = db.relationship("User", back_populates="user_roles", foreign_keys=[user_id])
    role = db.relationship("Role", back_populates="user_roles")


# ═══════════════════════════════════════════════════════════════
# 5. COMPANY_MEMBERS (User ↔ Company assignment)
# ═══════════════════════════════════════════════════════════════
class CompanyMember(db.Model):
    __tablename__ = "company_members"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role = db.Column(db.String(30), nullable=False)  # hr_manager | ceo | consultant
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("company_id", "user_id", name="uq_company_member"),
        db.Index("ix_company_members_company", "company_id"),
        db.Index("ix_company_members_user", "user_id"),
    )

    company = db.relationship("Company", back_populates="members")
    user = db.relationship("User", back_populates="memberships", foreign_keys=[user_id])

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "role": self.role,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
            "user": self.user.to_dict() if self.user else None,
        }

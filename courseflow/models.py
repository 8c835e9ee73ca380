"""SQLAlchemy ORM models."""
import enum
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.hybrid import hybrid_property

from courseflow.config import settings
from courseflow.database import Base


class UserRole(str, enum.Enum):
    """User role enumeration."""

    admin = "admin"
    teacher = "teacher"
    editor = "editor"
    student = "student"


class VersionStatus(str, enum.Enum):
    """Course version lifecycle states."""

    draft = "draft"
    pending_review = "pending_review"
    published = "published"
    archived = "archived"


class MergeRequestStatus(str, enum.Enum):
    """Merge request states."""

    open = "open"
    approved = "approved"
    merged = "merged"
    rejected = "rejected"


class ResourceType(str, enum.Enum):
    """Kinds of topic resources."""

    pdf = "pdf"
    document = "document"
    image = "image"
    audio = "audio"
    video = "video"
    link = "link"
    other = "other"


class User(Base):
    """Actors: admins, teachers, editors and students."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    role = Column(Enum(UserRole), default=UserRole.student, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Course(Base):
    """A course. Versions and branches hang off it by id."""

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    summary = Column(Text)
    description = Column(Text)
    visibility_override = Column(Boolean, default=False, nullable=False)

    active_version_id = Column(
        Integer,
        ForeignKey("course_versions.id", use_alter=True, name="fk_courses_active_version_id"),
        nullable=True,
    )
    default_branch_id = Column(
        Integer,
        ForeignKey("course_branches.id", use_alter=True, name="fk_courses_default_branch_id"),
        nullable=True,  # set right after the default branch row exists
    )

    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def has_active_version(self) -> bool:
        return self.active_version_id is not None


class CourseBranch(Base):
    """An isolated line of course-content development."""

    __tablename__ = "course_branches"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    parent_branch_id = Column(Integer, ForeignKey("course_branches.id"), nullable=True)
    base_version_id = Column(
        Integer,
        ForeignKey("course_versions.id", use_alter=True, name="fk_course_branches_base_version_id"),
        nullable=True,
    )
    is_default = Column(Boolean, default=False, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("course_id", "name", name="uq_course_branch_name"),
    )

    def is_main(self) -> bool:
        return self.is_default or self.name == settings.DEFAULT_BRANCH_NAME

    def has_parent(self) -> bool:
        return self.parent_branch_id is not None


class CourseVersion(Base):
    """A snapshot of course content on a branch.

    ``status`` is the only stored lifecycle field; ``is_active`` and
    ``is_published`` are projections of it. ``is_tip`` is the branch
    pointer and is stored independently.
    """

    __tablename__ = "course_versions"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    branch_id = Column(Integer, ForeignKey("course_branches.id"), nullable=False, index=True)
    version_label = Column(String(100), nullable=False)
    summary = Column(Text)
    status = Column(Enum(VersionStatus), default=VersionStatus.draft, nullable=False)
    is_tip = Column(Boolean, default=False, nullable=False)

    parent_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=True)
    based_on_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=True)
    merged_into_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=True)
    merge_request_id = Column(
        Integer,
        ForeignKey(
            "course_merge_requests.id",
            use_alter=True,
            name="fk_course_versions_merge_request_id",
        ),
        nullable=True,
    )

    created_by = Column(Integer, ForeignKey("users.id"))
    reviewed_by = Column(Integer, ForeignKey("users.id"))
    approved_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("course_id", "version_label", name="uq_course_version_label"),
    )

    @hybrid_property
    def is_active(self):
        return self.status == VersionStatus.published

    @hybrid_property
    def is_published(self):
        return self.status in (VersionStatus.published, VersionStatus.archived)

    @is_published.expression
    def is_published(cls):
        return cls.status.in_([VersionStatus.published, VersionStatus.archived])

    def is_draft(self) -> bool:
        return self.status == VersionStatus.draft

    def is_pending_review(self) -> bool:
        return self.status == VersionStatus.pending_review

    def is_archived(self) -> bool:
        return self.status == VersionStatus.archived

    def is_merged(self) -> bool:
        return self.merged_into_version_id is not None

    def is_published_and_visible(self) -> bool:
        return self.status == VersionStatus.published

    def belongs_to_branch(self, branch_id: int) -> bool:
        return self.branch_id == branch_id

    def has_parent(self) -> bool:
        return self.parent_version_id is not None


class CourseMergeRequest(Base):
    """Proposal to fold a source branch tip into a target branch."""

    __tablename__ = "course_merge_requests"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    source_branch_id = Column(Integer, ForeignKey("course_branches.id"), nullable=False)
    target_branch_id = Column(Integer, ForeignKey("course_branches.id"), nullable=False)
    source_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=False)
    target_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=True)

    title = Column(String(200), nullable=False)
    summary = Column(Text)
    status = Column(Enum(MergeRequestStatus), default=MergeRequestStatus.open, nullable=False)

    opened_by = Column(Integer, ForeignKey("users.id"))
    reviewer_id = Column(Integer, ForeignKey("users.id"))
    opened_at = Column(DateTime, default=datetime.utcnow)
    closed_at = Column(DateTime)
    merged_at = Column(DateTime)

    payload = Column(JSON)

    __table_args__ = (
        CheckConstraint("source_branch_id <> target_branch_id", name="ck_merge_request_branches"),
    )

    def is_open(self) -> bool:
        return self.status == MergeRequestStatus.open

    def is_approved(self) -> bool:
        return self.status == MergeRequestStatus.approved

    def is_merged(self) -> bool:
        return self.status == MergeRequestStatus.merged

    def is_closed(self) -> bool:
        return self.status in (MergeRequestStatus.merged, MergeRequestStatus.rejected)


class CourseTopic(Base):
    """Ordered topic within a course version."""

    __tablename__ = "course_topics"

    id = Column(Integer, primary_key=True, index=True)
    course_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    order_index = Column(Integer, nullable=False)  # 1-based
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CourseResource(Base):
    """Ordered resource within a topic. Either file-backed or a link."""

    __tablename__ = "course_resources"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("course_topics.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    resource_type = Column(Enum(ResourceType), nullable=False)

    # File-backed
    file_url = Column(String(1000))
    file_name = Column(String(255))
    file_size = Column(Integer)
    mime_type = Column(String(100))

    # Link-backed
    external_url = Column(String(1000))

    order_index = Column(Integer, nullable=False)  # 1-based
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_external(self) -> bool:
        return self.resource_type == ResourceType.link

    def has_file(self) -> bool:
        return self.file_url is not None


class CourseVersionTeacher(Base):
    """Teacher/editor assigned to work on a course version."""

    __tablename__ = "course_version_teachers"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    course_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("course_version_id", "teacher_id", name="uq_version_teacher"),
    )


class StudentProgress(Base):
    """Per-student completion state of a topic."""

    __tablename__ = "student_progress"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("course_topics.id"), nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime)
    last_accessed_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("student_id", "topic_id", name="uq_student_topic_progress"),
    )

    def is_completed(self) -> bool:
        return self.completed


class CourseGroup(Base):
    """A cohort of students taking one course version with one teacher."""

    __tablename__ = "course_groups"

    id = Column(Integer, primary_key=True, index=True)
    course_version_id = Column(Integer, ForeignKey("course_versions.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("course_version_id", "name", name="uq_course_group_name"),
    )


class CourseGroupStudent(Base):
    """Enrolment of a student in a course group."""

    __tablename__ = "course_group_students"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("course_groups.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    enrolled_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("group_id", "student_id", name="uq_group_student"),
    )

from __future__ import annotations

from ..extensions import db
from employee_space.time_utils import to_utc_z


project_managers = db.Table(
    "project_managers",
    db.Column("project_id", db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

subtask_assignments = db.Table(
    "subtask_assignments",
    db.Column("subtask_id", db.Integer, db.ForeignKey("subtasks.id", ondelete="CASCADE"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Project(db.Model):
    """
    Billable project. Hours are logged against its subtasks.

    Managers may maintain the project's tasks and export its reports.
    """
    __tablename__ = "projects"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    managers = db.relationship("User", secondary=project_managers, lazy="selectin")
    tasks = db.relationship(
        "Task",
        backref="project",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Task.id",
    )

    def is_manager(self, user_id: int) -> bool:
        return any(m.id == user_id for m in self.managers)

    def to_dict(self, include_tasks: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "managers": [m.email for m in self.managers],
            "manager_ids": [m.id for m in self.managers],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_tasks:
            data["tasks"] = [t.to_dict() for t in self.tasks]
        return data


class Task(db.Model):
    __tablename__ = "tasks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    subtasks = db.relationship(
        "Subtask",
        backref="task",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Subtask.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed": self.completed,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Subtask(db.Model):
    __tablename__ = "subtasks"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    assigned_users = db.relationship("User", secondary=subtask_assignments, lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "description": self.description,
            "assigned_users": [u.email for u in self.assigned_users],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

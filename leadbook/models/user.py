"""User model — an agent who logs in and owns buyers.

Flask-Login integration via UserMixin. Passwords are stored as werkzeug
hashes only.
"""

import uuid

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from leadbook.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    buyers = db.relationship("Buyer", back_populates="owner", lazy="dynamic")
    history_entries = db.relationship(
        "BuyerHistory", back_populates="changed_by", lazy="dynamic"
    )

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        """Public projection embedded in buyer and history payloads."""
        return {"id": self.id, "name": self.name, "email": self.email}

    def __repr__(self):
        return f"<User {self.email}>"

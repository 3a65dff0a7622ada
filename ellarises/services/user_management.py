from typing import Optional

from sqlalchemy.orm import Session

from ellarises.database import User
from ellarises.services.auth_service import AuthService, auth_service as default_auth_service


class UserManager:
    def __init__(self, auth_service: Optional[AuthService] = None):
        self.auth_service = auth_service or default_auth_service

    def get_user_by_email(self, db: Session, email: str):
        return db.query(User).filter(User.useremail == email).first()

    def get_user_by_id(self, db: Session, user_id: int):
        return db.query(User).filter(User.userid == user_id).first()

    def create_user(self, db: Session, first_name: str, last_name: str, email: str, password: str, role: str):
        hashed_password = self.auth_service.get_password_hash(password)
        db_user = User(
            userfirstname=first_name,
            userlastname=last_name,
            useremail=email,
            password=hashed_password,
            userrole=role,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        return db_user

    def update_user(self, db: Session, user_id: int, *, first_name: str, last_name: str, email: str,
                    role: str, password: Optional[str] = None) -> bool:
        """Update a user by primary key. A blank password keeps the current credential."""
        values = {
            User.userfirstname: first_name,
            User.userlastname: last_name,
            User.useremail: email,
            User.userrole: role,
        }
        if password:
            values[User.password] = self.auth_service.get_password_hash(password)
        updated = db.query(User).filter(User.userid == user_id).update(values)
        db.commit()
        return updated > 0

    def delete_user(self, db: Session, user_id: int) -> bool:
        deleted = db.query(User).filter(User.userid == user_id).delete()
        db.commit()
        return deleted > 0


user_manager = UserManager()

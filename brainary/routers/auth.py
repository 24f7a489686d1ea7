"""
Brainary — Authentication Router
Username/password registration and login. bcrypt hashes, JWT tokens.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session as DBSession

from brainary.config import (
    JWT_SECRET, JWT_ALGORITHM, JWT_EXPIRY_HOURS, MIN_PASSWORD_LENGTH, MAX_PASSWORD_BYTES,
)
from brainary.database import get_db
from brainary.models import Student

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ─── Request/Response Models ─────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str
    name: str = Field(min_length=1, max_length=100)
    grade: str = Field(min_length=1, max_length=20)
    school: Optional[str] = None
    learning_goals: Optional[str] = None

class LoginRequest(BaseModel):
    username: str
    password: str

class StudentLoginResponse(BaseModel):
    student_id: str
    username: str
    name: str
    grade: str
    token: str

class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    grade: Optional[str] = Field(default=None, min_length=1, max_length=20)
    school: Optional[str] = None
    learning_goals: Optional[str] = None
    password: Optional[str] = None

class ProfileResponse(BaseModel):
    student_id: str
    username: str
    name: str
    grade: str
    school: Optional[str] = None
    learning_goals: Optional[str] = None


# ─── Password / JWT Helpers ──────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id: str, role: str = "student") -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def get_current_user(request: Request) -> dict:
    """FastAPI dependency: extract and verify JWT from Authorization header."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = auth[7:]
    return verify_token(token)


def get_current_student(
    user: dict = Depends(get_current_user),
    db: DBSession = Depends(get_db),
) -> Student:
    if user.get("role") != "student":
        raise HTTPException(403, "Student access only")
    student = db.query(Student).filter(Student.id == user["sub"]).first()
    if not student:
        raise HTTPException(404, "Student not found")
    return student


def _login_response(student: Student) -> StudentLoginResponse:
    return StudentLoginResponse(
        student_id=student.id,
        username=student.username,
        name=student.name,
        grade=student.grade,
        token=create_token(student.id),
    )


# ─── Endpoints ───────────────────────────────────────────────────────────────

def _check_password_rules(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(422, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(422, "Password is too long")


@router.post("/register", response_model=StudentLoginResponse, status_code=201)
def register_student(req: RegisterRequest, db: DBSession = Depends(get_db)):
    _check_password_rules(req.password)
    if db.query(Student).filter(Student.username == req.username).first():
        raise HTTPException(409, "Username already exists")

    student = Student(
        username=req.username,
        password_hash=hash_password(req.password),
        name=req.name,
        grade=req.grade,
        school=req.school,
        learning_goals=req.learning_goals,
    )
    db.add(student)
    db.commit()
    db.refresh(student)
    return _login_response(student)


@router.post("/login", response_model=StudentLoginResponse)
def login_student(req: LoginRequest, db: DBSession = Depends(get_db)):
    student = db.query(Student).filter(Student.username == req.username).first()
    if not student or not check_password(req.password, student.password_hash):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _login_response(student)


# ─── Profile ─────────────────────────────────────────────────────────────────

def _profile(student: Student) -> ProfileResponse:
    return ProfileResponse(
        student_id=student.id,
        username=student.username,
        name=student.name,
        grade=student.grade,
        school=student.school,
        learning_goals=student.learning_goals,
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(student: Student = Depends(get_current_student)):
    return _profile(student)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    req: ProfileUpdateRequest,
    student: Student = Depends(get_current_student),
    db: DBSession = Depends(get_db),
):
    """Fields left out keep their value. The new grade applies to exams started afterwards."""
    if req.password is not None:
        _check_password_rules(req.password)
        student.password_hash = hash_password(req.password)
    for field in ("name", "grade", "school", "learning_goals"):
        value = getattr(req, field)
        if value is not None:
            setattr(student, field, value.strip() if field in ("name", "grade") else value)
    if not student.name or not student.grade:
        raise HTTPException(422, "Name and grade cannot be empty.")
    db.commit()
    db.refresh(student)
    return _profile(student)

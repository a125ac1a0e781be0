# One model per MongoDB collection; references are stored as ObjectId strings.
from typing import List, Optional, Dict, Any, Literal
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from datetime import datetime, timezone

from grading import normalize_correct_answer, normalize_marks

Role = Literal["Teacher", "Student"]
Difficulty = Literal["easy", "medium", "hard"]
QuestionType = Literal["mcq", "tf", "sa"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Users collection: "users"
class User(BaseModel):
    role: Role
    name: str
    email: EmailStr
    password: str  # bcrypt hash, never returned
    createdAt: datetime = Field(default_factory=_now)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


# Embedded in quizzes
class Question(BaseModel):
    id: Optional[str] = None
    text: str
    type: QuestionType = "mcq"
    options: List[str] = []
    correctAnswer: Any = None
    marks: Any = 1
    explanation: str = ""

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {
                **data,
                "type": data.get("type") or "mcq",
                "options": data.get("options") or [],
                "explanation": data.get("explanation") or "",
            }
        return data

    @model_validator(mode="after")
    def normalize(self) -> "Question":
        self.correctAnswer = normalize_correct_answer(self.correctAnswer, self.type, self.options)
        self.marks = normalize_marks(self.marks)
        return self


def number_questions(questions: List[Question]) -> List[Dict[str, Any]]:
    docs = []
    for index, question in enumerate(questions):
        doc = question.model_dump()
        doc["id"] = doc["id"] or f"q{index + 1}"
        docs.append(doc)
    return docs


# Quizzes collection: "quizzes"
class Quiz(BaseModel):
    teacherId: str
    title: str
    description: str = ""
    questions: List[Question] = []
    totalMarks: int = 0
    duration: int = 30
    difficulty: Difficulty = "medium"
    isActive: bool = True
    topicId: Optional[str] = None


# Teacher roster collection: "students"
class Student(BaseModel):
    name: str
    email: EmailStr
    course: str
    teacherId: str
    attendance: bool = False
    allowed: bool = False
    lastUpdated: datetime = Field(default_factory=_now)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


# Connections collection: "connections"
class Connection(BaseModel):
    studentId: str
    teacherId: str
    status: Literal["pending", "approved", "rejected"] = "pending"
    course: str = "General"
    requestedAt: datetime = Field(default_factory=_now)
    respondedAt: Optional[datetime] = None


class ReportAnswer(BaseModel):
    questionId: str
    selectedAnswer: Any = None
    isCorrect: bool = False
    timeSpent: float = 0


# Reports collection: "reports"
class Report(BaseModel):
    studentId: str
    teacherId: str
    studentName: str = ""
    quizId: str
    quizTitle: str = ""
    score: float
    totalMarks: float
    percentage: float
    grade: str
    timeSpent: str = "00:00"
    date: datetime = Field(default_factory=_now)
    status: Literal["completed", "in-progress", "not-started"] = "completed"
    answers: List[ReportAnswer] = []


# Courses collection: "courses"
class Course(BaseModel):
    teacherId: str
    title: str
    code: str
    description: str = ""
    credits: int = 3
    department: str = "Computer Science"
    students: int = 0
    topics: int = 0
    status: Literal["active", "inactive", "archived"] = "active"

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


# Topics collection: "topics"
class Topic(BaseModel):
    courseId: str
    title: str
    description: str = ""
    duration: int = 1
    difficulty: Difficulty = "medium"
    order: int = 1
    quizzes: int = 0


class GeneralSettings(BaseModel):
    questionsPerPage: int = 5
    shuffleQuestions: bool = True
    shuffleOptions: bool = False
    marksPerQuestion: int = 1
    timeLimit: int = 30
    allowReview: bool = True
    autoSubmit: bool = False
    showResults: bool = True
    difficulty: Difficulty = "medium"


class SecuritySettings(BaseModel):
    autoSubmit: bool = False
    sessionTimeout: int = 30
    preventCopyPaste: bool = True
    fullScreenMode: bool = False


class NotificationSettings(BaseModel):
    emailNotifications: bool = True
    quizSubmissions: bool = True
    studentQuestions: bool = True
    systemUpdates: bool = False
    performanceReports: bool = True
    deliverySchedule: Literal["immediately", "daily", "weekly"] = "immediately"


# Settings collection: "settings", one per teacher
class Settings(BaseModel):
    teacherId: str
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    lastUpdated: datetime = Field(default_factory=_now)

# questionnaire_api/models/enums.py
import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"


class AssignmentType(str, enum.Enum):
    ALL_STUDENTS = "ALL_STUDENTS"
    SPECIFIC_STUDENTS = "SPECIFIC_STUDENTS"


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    FREE_TEXT = "FREE_TEXT"
    RATING = "RATING"
    YES_NO = "YES_NO"


class ImportMode(str, enum.Enum):
    REPLACE = "REPLACE"
    ADD = "ADD"
